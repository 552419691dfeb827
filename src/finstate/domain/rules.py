"""Classification rule domain service."""

from dataclasses import replace
from typing import Optional

from finstate.database.base import Database
from finstate.domain.entities import ClassificationRule, Statement
from finstate.domain.errors import ConflictError, NotFoundError, ValidationError, rule_not_found
from finstate.domain.ruleset import DEFAULT_RULES, RuleSet, validate_rule
from finstate.logging_config import get_logger

logger = get_logger(__name__)


class RuleService:
    """Service for managing classification rules.

    Built-in rules ship with the package; custom rules live in the database
    and take precedence over a built-in rule with the same ID.
    """

    def __init__(self, db: Database):
        """Initialize rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def rule_set(self) -> RuleSet:
        """Build the effective rule set (built-in rules merged with custom rules).

        Returns:
            RuleSet instance
        """
        rules = RuleSet(DEFAULT_RULES)
        for rule in self.db.list_rules():
            rules.add(rule)
        return rules

    def list_rules(self, statement: Optional[Statement] = None) -> list[ClassificationRule]:
        """List effective rules, optionally for one statement.

        Args:
            statement: Optional statement filter

        Returns:
            Rules in descending priority
        """
        rules = self.rule_set().sorted_by_priority()
        if statement is not None:
            rules = [r for r in rules if r.statement == statement]
        return rules

    def search_rules(self, query: str) -> list[ClassificationRule]:
        """Search rule names, line items and keywords (case-insensitive)."""
        return self.rule_set().search(query)

    def get_rule(self, rule_id: str) -> ClassificationRule:
        """Get an effective rule by ID.

        Raises:
            NotFoundError: If no rule has that ID
        """
        rule = self.rule_set().get(rule_id)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def add_rule(self, rule: ClassificationRule, replace_existing: bool = False) -> ClassificationRule:
        """Persist a custom rule.

        Args:
            rule: Rule to add
            replace_existing: Allow replacing a rule with the same ID

        Returns:
            The stored rule

        Raises:
            ValidationError: If the rule is malformed
            ConflictError: If the ID is taken and replace_existing is False
        """
        validate_rule(rule)
        if not replace_existing and rule.id in self.rule_set():
            raise ConflictError(f"Classification rule '{rule.id}' already exists")
        rule = replace(rule, is_custom=True)
        self.db.save_rule(rule)
        logger.info("Saved classification rule %s (%s.%s)", rule.id, rule.statement.value, rule.line_item)
        return rule

    def remove_rule(self, rule_id: str) -> None:
        """Remove a custom rule.

        Removing a custom rule that shadows a built-in one restores the
        built-in rule.

        Raises:
            NotFoundError: If no rule has that ID
            ValidationError: If the rule is built in
        """
        if self.db.get_rule(rule_id) is None:
            if any(r.id == rule_id for r in DEFAULT_RULES):
                raise ValidationError(f"Built-in rule '{rule_id}' cannot be removed")
            raise NotFoundError(rule_not_found(rule_id))
        self.db.delete_rule(rule_id)
        logger.info("Removed classification rule %s", rule_id)
