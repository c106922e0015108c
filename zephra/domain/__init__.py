from zephra.domain.user_operations import user_ops

__all__ = [
    "user_ops",
]
