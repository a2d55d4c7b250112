"""Create and update builders."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar, Generic, Self, TypeVar

from gitlab_api.body import Body
from gitlab_api.errors import GitlabInvalidArgumentError, GitlabUnknownRemoteError
from gitlab_api.facade import Facade
from gitlab_api.params import FieldSpec
from gitlab_api.requestor import GitlabRequestor

T = TypeVar("T", bound=Facade)
F = TypeVar("F", bound=Facade)


def to_facade(
    model: type[F],
    payload: dict[str, Any] | None,
    *,
    requestor: GitlabRequestor,
    endpoint: str,
    **defaults: Any,
) -> F:
    """Build the snapshot returned by a write, which must carry a JSON object."""
    if payload is None:
        raise GitlabUnknownRemoteError(
            f"Expected a JSON object in GitLab response for '{endpoint}'.",
            endpoint=endpoint,
        )
    return model.from_wire(payload, requestor=requestor, endpoint=endpoint, **defaults)


class Mutation(Generic[T]):
    """Field assignments bound for one endpoint.

    The payload only ever holds fields assigned through this builder, which is
    the dirty-field set sent on execution.
    """

    MODEL: ClassVar[type[Facade]]
    FIELDS: ClassVar[Mapping[str, FieldSpec]] = {}

    def __init__(
        self,
        requestor: GitlabRequestor,
        path: str,
        *,
        defaults: Mapping[str, Any] | None = None,
    ) -> None:
        self._requestor = requestor
        self._path = path
        self._defaults = dict(defaults or {})
        self._body = Body()

    def _set(self, name: str, value: object) -> Self:
        spec = self.FIELDS.get(name)
        if spec is None:
            allowed = ", ".join(sorted(self.FIELDS)) or "none"
            raise GitlabInvalidArgumentError(
                f"Unknown field '{name}' for '{self._path}'. Expected one of: {allowed}."
            )
        self._body.put(name, spec, value)
        return self

    def with_field(self, name: str, value: object) -> Self:
        """Assign a field by wire name."""
        return self._set(name, value)

    @property
    def path(self) -> str:
        return self._path

    @property
    def body(self) -> Body:
        return self._body

    @property
    def dirty_fields(self) -> tuple[str, ...]:
        return self._body.keys()

    def _to_facade(self, payload: dict[str, Any] | None) -> T:
        return to_facade(  # type: ignore[return-value]
            self.MODEL,
            payload,
            requestor=self._requestor,
            endpoint=self._path,
            **self._defaults,
        )


class Creator(Mutation[T]):
    """POSTs a new resource and returns its snapshot."""

    REQUIRED: ClassVar[tuple[str, ...]] = ()

    def create(self) -> T:
        missing = [name for name in self.REQUIRED if name not in self._body]
        if missing:
            raise GitlabInvalidArgumentError(
                f"Missing required fields for '{self._path}': {', '.join(missing)}."
            )
        return self._to_facade(self._requestor.post(self._path, self._body))


class Updater(Mutation[T]):
    """PUTs only the assigned fields of an existing resource."""

    def update(self) -> T:
        if not self._body:
            raise GitlabInvalidArgumentError(
                f"No fields were set for update of '{self._path}'."
            )
        return self._to_facade(self._requestor.put(self._path, self._body))
