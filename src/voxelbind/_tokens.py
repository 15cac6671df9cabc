from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any, Generic, TypeVar


T = TypeVar("T")

if TYPE_CHECKING:
    from typing import Union

    TokenLike = Union[str, type, "Token[Any]"]


class Token(Generic[T]):
    """Process-unique marker usable as a binding token.

    Two markers never compare equal, even with the same description.
    """

    __slots__ = ("description",)

    def __init__(self, description: str) -> None:
        self.description = description

    def __repr__(self) -> str:
        return f"Token({self.description!r})"


def token_name(token: object) -> str:
    if inspect.isclass(token):
        return token.__name__
    if isinstance(token, Token):
        return f"Token({token.description})"
    return str(token)
