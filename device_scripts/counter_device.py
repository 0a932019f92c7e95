"""Generic device keeping a counter."""


class Counter:
    def __init__(self, start: int = 0, step: int = 1) -> None:
        self.count = start
        self.step = step
        self.label = "counter"

    def increment(self) -> int:
        self.count += self.step
        return self.count

    def reset(self) -> None:
        self.count = 0
