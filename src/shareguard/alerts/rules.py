"""Alert rule table - declarative rules loaded once from YAML.

Each rule is an AND of conditions over AlertContext fields:

    - field: trust_score          # dotted paths allowed: geo_check.is_impossible
      op: lt                      # eq ne lt le gt ge between
      value: 40                   # or value_from: max_sessions

Rules are immutable after loading and are evaluated in file order.
"""

import operator
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from shareguard.common.exceptions import ConfigurationError
from shareguard.data.schemas import Severity


DEFAULT_RULES_FILE = Path(__file__).parent / "rules.yaml"

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "lt": operator.lt,
    "le": operator.le,
    "gt": operator.gt,
    "ge": operator.ge,
}


def resolve_field(source: Any, path: str) -> Any:
    """Follow a dotted path through models and dicts. Missing -> None."""
    value = source
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


class Condition(BaseModel):
    """One comparison clause."""
    model_config = ConfigDict(frozen=True)

    field: str
    op: str = Field(..., pattern="^(eq|ne|lt|le|gt|ge|between)$")
    value: Optional[Union[bool, int, float, str, List[Union[int, float]]]] = None
    value_from: Optional[str] = None

    @model_validator(mode="after")
    def _check_operand(self) -> "Condition":
        if (self.value is None) == (self.value_from is None):
            raise ValueError(f"condition on {self.field} needs exactly one of value / value_from")
        if self.op == "between" and not (isinstance(self.value, list) and len(self.value) == 2):
            raise ValueError(f"between on {self.field} needs value: [low, high]")
        return self

    def matches(self, context: Any) -> bool:
        actual = resolve_field(context, self.field)
        if actual is None:
            return False

        expected = resolve_field(context, self.value_from) if self.value_from else self.value
        if expected is None:
            return False

        if self.op == "between":
            low, high = expected
            return low <= actual <= high
        return _OPERATORS[self.op](actual, expected)


class AlertRule(BaseModel):
    """A named predicate with severity, actions and a message template."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    severity: Severity
    conditions: Tuple[Condition, ...] = Field(..., min_length=1)
    actions: Tuple[str, ...] = ()
    message: str

    def matches(self, context: Any) -> bool:
        return all(condition.matches(context) for condition in self.conditions)

    def render(self, fields: Dict[str, Any]) -> str:
        """Render the message template. Falls back to the rule name."""
        try:
            return self.message.format_map(fields)
        except (KeyError, AttributeError, IndexError, ValueError, TypeError):
            return self.name


class RuleTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str = "1"
    rules: Tuple[AlertRule, ...]

    @model_validator(mode="after")
    def _unique_ids(self) -> "RuleTable":
        ids = [rule.id for rule in self.rules]
        if len(ids) != len(set(ids)):
            raise ValueError("rule ids must be unique")
        return self


def load_rules(path: Optional[Union[str, Path]] = None) -> Tuple[AlertRule, ...]:
    """Load and validate the rule table.

    Args:
        path: YAML file. Uses the packaged rules.yaml if not provided.

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    rules_file = Path(path) if path else DEFAULT_RULES_FILE
    if not rules_file.exists():
        raise ConfigurationError(f"Alert rules file not found: {rules_file}")

    with open(rules_file, "r") as f:
        raw = yaml.safe_load(f)

    try:
        table = RuleTable.model_validate(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid alert rules in {rules_file}", details={"errors": str(e)}
        ) from e
    return table.rules
