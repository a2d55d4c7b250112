"""Read-only snapshots of remote resources."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, PrivateAttr, ValidationError

from gitlab_api.errors import GitlabInvalidArgumentError, GitlabUnknownRemoteError
from gitlab_api.requestor import GitlabRequestor


def _hashable(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_hashable(item) for item in value)
    if isinstance(value, dict):
        return tuple(sorted((key, _hashable(item)) for key, item in value.items()))
    return value


class Facade(BaseModel):
    """Immutable snapshot of one GitLab resource at fetch time.

    Facades keep a capability reference to the requestor that produced them so
    they can build child queries and mutations without re-authenticating.
    Equality and hashing use the field values only, so snapshots fetched
    through different clients compare equal.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    _requestor: GitlabRequestor | None = PrivateAttr(default=None)

    @classmethod
    def from_wire(
        cls,
        payload: Mapping[str, Any],
        *,
        requestor: GitlabRequestor | None,
        endpoint: str,
        **defaults: Any,
    ) -> Self:
        """Validate a JSON object and bind the result to ``requestor``.

        ``defaults`` fill fields the service leaves out, such as the owning
        project id of a branch.
        """
        data = dict(payload)
        for key, value in defaults.items():
            data.setdefault(key, value)
        try:
            facade = cls.model_validate(data)
        except ValidationError as error:
            raise GitlabUnknownRemoteError(
                f"Unexpected {cls.__name__} payload in GitLab response for '{endpoint}': {error}",
                endpoint=endpoint,
                body=repr(payload),
            ) from error
        facade._bind(requestor)
        return facade

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Facade):
            return NotImplemented
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self) -> int:
        return hash((type(self), *(_hashable(value) for value in self.__dict__.values())))

    def _bind(self, requestor: GitlabRequestor | None) -> None:
        self._requestor = requestor
        for name in type(self).model_fields:
            value = getattr(self, name)
            if isinstance(value, Facade):
                value._bind(requestor)
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, Facade):
                        item._bind(requestor)

    @property
    def requestor(self) -> GitlabRequestor:
        if self._requestor is None:
            raise GitlabInvalidArgumentError(
                f"{type(self).__name__} is not bound to a client and cannot issue requests."
            )
        return self._requestor
