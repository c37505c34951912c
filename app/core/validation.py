"""Two-stage request validation.

Stage one decodes the raw body strictly into a request model and reports
the first structural problem it meets. Stage two runs the rules declared on
the model fields and reports every failing field at once.

Rules are declared with ``Annotated`` metadata::

    class UserCreateRequest(RequestModel):
        username: Annotated[str | None, rules("required", "min=3", "max=30", "username")] = None
"""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from typing import TypeVar
import logging

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import ValidationError
from pydantic.fields import FieldInfo
from starlette.requests import ClientDisconnect
from starlette.requests import Request

from app.core.errors import ClassifiedError
from app.core.errors import ErrorCode
from app.core.logging import log_event
from app.core.value_objects import DateOfBirth
from app.core.value_objects import Email
from app.core.value_objects import Name
from app.core.value_objects import Password
from app.core.value_objects import Username
from app.core.value_objects import ValueObjectError
from app.schemas.error import ValidationErrorDetail

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
RulePredicate = Callable[[Any], bool]

_EXPECTED_TYPES = {
    "int": "int",
    "float": "float",
    "decimal": "decimal",
    "string": "string",
    "bool": "bool",
    "datetime": "datetime",
    "date": "date",
    "time": "time",
    "uuid": "UUID",
    "list": "list",
    "tuple": "list",
    "set": "list",
    "dict": "object",
    "model": "object",
    "enum": "enum",
    "literal": "literal",
}

_MESSAGES = {
    "required": "{field} is required.",
    "min": "{field} must be at least {param} characters long.",
    "max": "{field} must be at most {param} characters long.",
    "gte": "{field} must be greater than or equal to {param}.",
    "lte": "{field} must be less than or equal to {param}.",
    "email": "{field} must be a valid email address.",
    "username": "{field} must be a valid username.",
    "password": "{field} must be a valid password.",
    "dateofbirth": "{field} must be a valid date of birth.",
    "name": "{field} must be a valid name.",
}
_DEFAULT_MESSAGE = "Validation failed for {field} with tag {rule}."


@dataclass(frozen=True)
class RuleSpec:
    name: str
    param: str | None = None

    def __str__(self) -> str:
        return self.name if self.param is None else f"{self.name}={self.param}"


@dataclass(frozen=True)
class Rules:
    """Ordered rule declarations attached to one request model field."""

    entries: tuple[RuleSpec, ...]


def rules(*declarations: str) -> Rules:
    """Parse rule declarations such as ``"required"`` or ``"max=30"``."""
    entries: list[RuleSpec] = []
    for declaration in declarations:
        name, sep, param = declaration.partition("=")
        entries.append(RuleSpec(name=name.strip(), param=param.strip() if sep else None))
    return Rules(entries=tuple(entries))


class RequestModel(BaseModel):
    """Base for decoded request bodies: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


def _declared_rules(field_info: FieldInfo) -> Rules | None:
    for item in field_info.metadata:
        if isinstance(item, Rules):
            return item
    return None


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _measure(value: Any) -> Any:
    if isinstance(value, (str, bytes, list, tuple, dict, set)):
        return len(value)
    return value


def _min(value: Any, param: str) -> bool:
    return _measure(value) >= float(param)


def _max(value: Any, param: str) -> bool:
    return _measure(value) <= float(param)


def _gte(value: Any, param: str) -> bool:
    return value >= float(param)


def _lte(value: Any, param: str) -> bool:
    return value <= float(param)


_BUILTIN_RULES: Mapping[str, Callable[[Any, str], bool]] = {
    "min": _min,
    "max": _max,
    "gte": _gte,
    "lte": _lte,
}


def validation_error_message(field: str, rule: str, param: str | None = None) -> str:
    """Return the human-readable message for one failed rule."""
    template = _MESSAGES.get(rule, _DEFAULT_MESSAGE)
    return template.format(field=field, rule=rule, param=param or "")


def _registration_error(message: str, *, cause: BaseException | None = None, **fields: Any) -> ClassifiedError:
    log_event(
        logger,
        logging.ERROR,
        message,
        component="validation",
        event="custom_validation_failed",
        **fields,
    )
    return ErrorCode.VALIDATION_REGISTRATION_ERROR.new_error(details=message, cause=cause)


class RequestValidator:
    """Decodes request bodies and checks declared domain rules."""

    def __init__(self) -> None:
        self._rules: dict[str, RulePredicate] = {}

    def register_rule(self, name: str, predicate: RulePredicate | None) -> None:
        """Register or overwrite a named single-value rule.

        An empty name or a missing predicate is a configuration error and
        raises immediately, so it surfaces at startup.
        """
        if not name or not name.strip():
            raise _registration_error("validation tag cannot be empty")
        if predicate is None or not callable(predicate):
            raise _registration_error("validation predicate is required", tag=name)
        self._rules[name] = predicate
        log_event(
            logger,
            logging.DEBUG,
            "Custom validation registered",
            component="validation",
            event="custom_validation_success",
            tag=name,
        )

    def check_models(self, *models: type[BaseModel]) -> None:
        """Fail fast when a model declares a rule that cannot be resolved."""
        for model in models:
            for name, field_info in model.model_fields.items():
                declared = _declared_rules(field_info)
                if declared is None:
                    continue
                for entry in declared.entries:
                    self._resolve(entry, model=model.__name__, model_field=name)

    def _resolve(self, entry: RuleSpec, **context: Any) -> RulePredicate:
        if entry.name == "required":
            return lambda value: not _is_empty(value)

        custom = self._rules.get(entry.name)
        if custom is not None:
            return custom

        builtin = _BUILTIN_RULES.get(entry.name)
        if builtin is None:
            raise _registration_error("unknown validation rule", tag=str(entry), **context)
        if entry.param is None:
            raise _registration_error("validation rule requires a parameter", tag=str(entry), **context)
        try:
            float(entry.param)
        except ValueError as exc:
            raise _registration_error("validation rule parameter is not numeric", cause=exc, tag=str(entry), **context)
        return lambda value: builtin(value, entry.param)

    async def decode_request(self, request: Request, model: type[ModelT]) -> ModelT:
        """Read the full request body and decode it into ``model``."""
        try:
            body = await request.body()
        except (ClientDisconnect, OSError, RuntimeError) as exc:
            raise ErrorCode.INTERNAL_SERVER_ERROR.new_error(details="Failed to read request body", cause=exc)
        return self.decode_body(body, model)

    async def parse_request(self, request: Request, model: type[ModelT]) -> ModelT:
        """Decode the body and check its declared rules."""
        instance = await self.decode_request(request, model)
        self.validate(instance)
        return instance

    def decode_body(self, body: bytes | str, model: type[ModelT]) -> ModelT:
        """Decode a raw JSON body strictly, raising the first structural error."""
        if not body or not body.strip():
            raise ErrorCode.BAD_REQUEST.new_error(details="Request body is empty")
        try:
            return model.model_validate_json(body, strict=True)
        except ValidationError as exc:
            raise _classify_decode_error(exc)

    def validate(self, instance: BaseModel) -> None:
        """Check every declared rule and raise one error listing all failing fields."""
        details: list[ValidationErrorDetail] = []
        for name, field_info in type(instance).model_fields.items():
            declared = _declared_rules(field_info)
            if declared is None:
                continue
            detail = self._first_failure(field_info.alias or name, getattr(instance, name), declared)
            if detail is not None:
                details.append(detail)

        if details:
            raise ErrorCode.UNPROCESSABLE_ENTITY.new_error(details=details)

    def _first_failure(self, field: str, value: Any, declared: Rules) -> ValidationErrorDetail | None:
        for entry in declared.entries:
            if entry.name != "required" and value is None:
                # Absent optional field.
                return None
            predicate = self._resolve(entry, field=field)
            try:
                passed = predicate(value)
            except (TypeError, ValueError) as exc:
                raise _registration_error(
                    "validation rule cannot be applied to field type", cause=exc, tag=str(entry), field=field
                )
            if not passed:
                return ValidationErrorDetail(
                    field=field,
                    rule=entry.name,
                    param=entry.param,
                    message=validation_error_message(field, entry.name, entry.param),
                )
        return None


def _classify_decode_error(exc: ValidationError) -> ClassifiedError:
    issues = exc.errors(include_url=False)
    if not issues:
        return ErrorCode.BAD_REQUEST.new_error(details="Body decoding failed", cause=exc)

    issue = issues[0]
    error_type = str(issue.get("type", ""))
    location = tuple(issue.get("loc", ()))
    field = ".".join(str(part) for part in location)

    if error_type == "json_invalid":
        reason = (issue.get("ctx") or {}).get("error", issue.get("msg", ""))
        return ErrorCode.JSON_SYNTAX_ERROR.new_error(details=f"Invalid JSON syntax: {reason}", cause=exc)
    if error_type == "extra_forbidden":
        return ErrorCode.JSON_UNKNOWN_FIELD_ERROR.new_error(details=f"Unknown field '{field}'.", cause=exc)
    if not location:
        return ErrorCode.BAD_REQUEST.new_error(details="Body decoding failed", cause=exc)
    if error_type == "missing":
        return ErrorCode.BAD_REQUEST.new_error(details=f"Missing field '{field}'.", cause=exc)

    prefix = error_type.split("_", 1)[0]
    expected = _EXPECTED_TYPES.get(prefix)
    if expected is None:
        return ErrorCode.BAD_REQUEST.new_error(details="Body decoding failed", cause=exc)
    return ErrorCode.JSON_TYPE_MISMATCH_ERROR.new_error(
        details=f"Invalid type for field '{field}'. Expected type {expected}.",
        cause=exc,
    )


def _accepts(factory: Callable[[Any], object]) -> RulePredicate:
    def predicate(value: Any) -> bool:
        try:
            factory(value)
        except ValueObjectError:
            return False
        return True

    return predicate


def build_request_validator() -> RequestValidator:
    """Return a validator with the domain rules registered."""
    validator = RequestValidator()
    validator.register_rule("username", _accepts(Username))
    validator.register_rule("password", _accepts(Password))
    validator.register_rule("email", _accepts(Email))
    validator.register_rule("dateofbirth", _accepts(DateOfBirth))
    validator.register_rule("name", _accepts(Name))
    return validator
