"""
Configuration Management for Reception Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All tunables of the hierarchy engine live here.
The reserved delimiter, the transaction-type aliases and the label used for
blank grouping fields are data conventions shared with whatever imported the
line items, so they must be configurable rather than hard-coded.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_tags(raw: str) -> frozenset[str]:
    return frozenset(
        tag.strip().casefold() for tag in raw.split(",") if tag.strip()
    )


class HierarchySettings(BaseSettings):
    """Grouping conventions for the hierarchy engine."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_HIERARCHY_",
        extra="ignore"
    )

    id_delimiter: str = Field(
        default="_ID_",
        min_length=1,
        description="Reserved delimiter between a base item label and its opaque suffix"
    )
    income_tags: str = Field(
        default="income,Доходы,Приход",
        description="Comma-separated transaction-type tags treated as income"
    )
    expense_tags: str = Field(
        default="expense,Расходы,Расход",
        description="Comma-separated transaction-type tags treated as expense"
    )
    canonical_income_tag: str = Field(
        default="Доходы",
        description="Tag written for income items created through the engine"
    )
    canonical_expense_tag: str = Field(
        default="Расходы",
        description="Tag written for expense items created through the engine"
    )
    unspecified_label: str = Field(
        default="Не указано",
        min_length=1,
        description="Label of the bucket collecting blank grouping fields"
    )

    @field_validator('income_tags', 'expense_tags')
    @classmethod
    def validate_tags_not_empty(cls, v: str) -> str:
        """At least one alias is required per transaction type."""
        if not _split_tags(v):
            raise ValueError("At least one transaction-type tag is required")
        return v

    @property
    def income_tag_set(self) -> frozenset[str]:
        """Income aliases, case-folded."""
        return _split_tags(self.income_tags)

    @property
    def expense_tag_set(self) -> frozenset[str]:
        """Expense aliases, case-folded."""
        return _split_tags(self.expense_tags)


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Reconciliation after a successful write
    merge_after_commit: bool = Field(
        default=False,
        description="Merge committed fields locally instead of reloading from storage"
    )

    # Defaults applied when adding a new line item
    default_quantity: Decimal = Field(
        default=Decimal("1"),
        ge=0,
        description="Quantity used when a new item omits it"
    )
    default_price: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Price used when a new item omits it"
    )

    # Validation thresholds
    max_line_value: Decimal = Field(
        default=Decimal("100000000"),
        gt=0,
        description="Maximum reasonable quantity * price (for sanity checking)"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def hierarchy(self) -> HierarchySettings:
        return HierarchySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        hierarchy = settings.hierarchy
        overlap = hierarchy.income_tag_set & hierarchy.expense_tag_set
        if overlap:
            raise ValueError(
                f"Tags cannot be both income and expense: {sorted(overlap)}"
            )
        results["hierarchy"] = True
    except Exception as e:
        results["hierarchy"] = False
        results["hierarchy_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
