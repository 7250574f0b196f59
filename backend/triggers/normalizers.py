"""Payload normalizers for external webhook services.

Each normalizer reshapes a provider's webhook body into the flat trigger
payload a workflow starts with. Unknown services pass the body through.
"""

from typing import Any, Callable, Dict


_TYPEFORM_VALUE_KEYS = (
    "text", "choice", "choices", "email", "phone_number",
    "number", "boolean", "date", "url", "file_url",
)


def _typeform_answer_value(answer: Dict[str, Any]) -> Any:
    """Value of one Typeform answer, chosen by its ``type`` key."""
    answer_type = answer.get("type")
    if not isinstance(answer_type, str) or answer_type not in answer:
        answer_type = next((k for k in _TYPEFORM_VALUE_KEYS if k in answer), None)
    if answer_type is None:
        return None

    value = answer[answer_type]
    if answer_type == "choice" and isinstance(value, dict):
        return value.get("label", value.get("other"))
    if answer_type == "choices" and isinstance(value, dict):
        return value.get("labels", [])
    return value


def normalize_typeform(data: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a Typeform ``form_response`` into ``answers`` keyed by field ref."""
    response = data.get("form_response")
    if not isinstance(response, dict):
        return {"source": "typeform", "raw_data": data}

    answers: Dict[str, Any] = {}
    for answer in response.get("answers") or []:
        field = answer.get("field") or {}
        key = field.get("ref") or field.get("id") or "unknown"
        answers[key] = _typeform_answer_value(answer)

    return {
        "source": "typeform",
        "form_id": response.get("form_id"),
        "response_id": response.get("token"),
        "submitted_at": response.get("submitted_at"),
        "answers": answers,
        "raw_data": data,
    }


def normalize_zapier(data: Dict[str, Any]) -> Dict[str, Any]:
    return {"source": "zapier", **data}


def normalize_stripe(data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("type") and isinstance(data.get("data"), dict):
        return {
            "source": "stripe",
            "event_type": data["type"],
            "event_id": data.get("id"),
            "object": data["data"].get("object"),
            "raw_data": data,
        }
    return {"source": "stripe", "raw_data": data}


def normalize_calendly(data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("event"):
        return {
            "source": "calendly",
            "event_type": data["event"],
            "payload": data.get("payload"),
            "time": data.get("time"),
            "raw_data": data,
        }
    return {"source": "calendly", "raw_data": data}


NORMALIZERS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "typeform": normalize_typeform,
    "zapier": normalize_zapier,
    "stripe": normalize_stripe,
    "calendly": normalize_calendly,
}


def normalize_payload(service: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply the normalizer registered for ``service`` (case-insensitive)."""
    normalizer = NORMALIZERS.get((service or "").lower())
    if normalizer is None:
        return data
    return normalizer(data)
