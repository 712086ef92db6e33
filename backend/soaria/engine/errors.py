"""
Engine exceptions. Every quest rejection carries a machine-readable reason.
"""


class QuestError(Exception):
    status_code = 400

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


class QuestNotFound(QuestError):
    status_code = 404

    def __init__(self, quest_id: int):
        super().__init__("not_found", f"Quest {quest_id} not found")
        self.quest_id = quest_id


class QuestRejected(QuestError):
    """A transition whose guard failed. No state was changed."""


class UnknownCounter(ValueError):
    def __init__(self, counter: str):
        super().__init__(f"Unknown statistic counter: {counter!r}")
        self.counter = counter
