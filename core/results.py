from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class PassResult:
    """
    Outcome of one batch pass (schedule generation, reminders, overdue check).

    Items are processed independently; a failing item is recorded here
    instead of aborting the pass.
    """
    name: str
    succeeded: int = 0
    skipped: int = 0
    failures: List[Dict[str, Any]] = field(default_factory=list)
    counters: Dict[str, int] = field(default_factory=dict)

    @property
    def failed(self):
        return len(self.failures)

    def record_failure(self, item, error):
        self.failures.append({'item': item, 'error': str(error), 'error_type': type(error).__name__})

    def increment(self, counter, amount=1):
        self.counters[counter] = self.counters.get(counter, 0) + amount

    def as_dict(self):
        return {
            'name': self.name,
            'succeeded': self.succeeded,
            'skipped': self.skipped,
            'failed': self.failed,
            'failures': list(self.failures),
            **self.counters,
        }
