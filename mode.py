from enum import IntEnum


class Mode(IntEnum):
    USER = 0
    SUPERVISOR = 1
    MACHINE = 3

    @classmethod
    def from_code(cls, code):
        try:
            return cls(code & 0x3)
        except ValueError:
            raise ValueError(f"Invalid privilege mode code: {code}") from None
