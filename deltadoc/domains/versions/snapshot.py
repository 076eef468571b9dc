DEFAULT_SNAPSHOT_INTERVAL = 10
DEFAULT_MAX_DELTA_OPS = 50000


class SnapshotPolicy:
    """Решает, хранить ли версию полным снимком вместо дельты.

    Снимок делается на каждой ``interval``-й версии, что ограничивает длину
    цепочки воспроизведения, и сразу, если дельта слишком велика.
    """

    def __init__(self, interval: int = DEFAULT_SNAPSHOT_INTERVAL, max_delta_ops: int = DEFAULT_MAX_DELTA_OPS):
        if interval < 1:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.max_delta_ops = max_delta_ops

    def should_snapshot(self, version_number: int, delta_op_count: int) -> bool:
        return version_number % self.interval == 0 or delta_op_count > self.max_delta_ops
