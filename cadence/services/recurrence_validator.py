"""Recurrence Validator."""
from datetime import date, datetime
from typing import Any, Dict, Optional

from pydantic import TypeAdapter, ValidationError

from cadence.models.recurrence_rule import RULE_CLASSES, RULE_TYPES, RecurrenceRule
from cadence.services.errors import InvalidRuleError

_rule_adapter = TypeAdapter(RecurrenceRule)


def parse_recurrence_rule(pattern: Any):
    """
    Build a recurrence rule from its stored (or request) form.

    Args:
        pattern: A rule model, or a dict with camelCase or snake_case keys

    Returns:
        The validated rule variant

    Raises:
        InvalidRuleError: If the pattern is malformed or uses an unsupported type
    """
    if isinstance(pattern, RULE_CLASSES):
        return pattern

    if not isinstance(pattern, dict):
        raise InvalidRuleError("Recurrence pattern must be an object")

    rule_type = pattern.get("type")
    if rule_type == "custom":
        # No semantics exist for custom rules yet; reject instead of guessing
        raise InvalidRuleError(
            "Custom recurrence rules are not supported",
            details={"field": "type", "value": rule_type}
        )
    if rule_type not in RULE_TYPES:
        raise InvalidRuleError(
            f"Recurrence type must be one of: {', '.join(RULE_TYPES)}",
            details={"field": "type", "value": rule_type}
        )

    try:
        return _rule_adapter.validate_python(pattern)
    except ValidationError as e:
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"][1:]) or "pattern",
                "message": err["msg"],
            }
            for err in e.errors()
        ]
        raise InvalidRuleError("Invalid recurrence pattern", details={"errors": errors}) from e


class RecurrenceValidator:
    """Validate recurrence rules for tasks."""

    @staticmethod
    def validate_recurrence_pattern(pattern: Dict[str, Any], anchor_date: Optional[date] = None) -> Dict[str, Any]:
        """
        Validate a recurrence pattern.

        Args:
            pattern: Recurrence pattern in stored form
            anchor_date: Optional anchor the pattern will be counted from

        Returns:
            Dict with validation result
        """
        result = {
            "valid": True,
            "errors": [],
            "warnings": []
        }

        try:
            rule = parse_recurrence_rule(pattern)
        except InvalidRuleError as e:
            result["valid"] = False
            nested = e.details.get("errors")
            if nested:
                result["errors"].extend(f"{err['field']}: {err['message']}" for err in nested)
            else:
                result["errors"].append(e.message)
            return result

        if rule.type == "monthly" and rule.month_day is not None and rule.month_day > 28:
            result["warnings"].append(
                f"Day {rule.month_day} does not exist in every month; shorter months use their last day"
            )

        if rule.type == "monthly" and rule.nth_weekday is not None and rule.nth_weekday.week == 5:
            result["warnings"].append("Months without a fifth matching weekday will have no occurrence")

        if rule.end_date is not None and rule.max_occurrences is not None:
            result["warnings"].append("Both endDate and maxOccurrences are set; whichever is reached first ends the series")

        if anchor_date is not None:
            if isinstance(anchor_date, datetime):
                anchor_date = anchor_date.date()
            if rule.end_date is not None and rule.end_date < anchor_date:
                result["warnings"].append("endDate is before the task's due date; no occurrences will be generated")
            if rule.type == "yearly" and (anchor_date.month, anchor_date.day) == (2, 29):
                result["warnings"].append("Feb 29 falls back to Feb 28 in non-leap years")

        return result
