import pydantic

from order_admin.models.errors import ValidationError


def parse_model(model_cls, data: dict):
    """Build ``model_cls`` from untrusted input, reporting the first problem as a ValidationError."""
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        message = first.get("msg", "Invalid input")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        raise ValidationError(message, field=field) from exc
