"""Tax table loading and validation.

Tax tables are versioned by fiscal year. Each ``<year>.json`` file holds the
UMA value, IMSS/INFONAVIT rates, labor parameters and one ISR + subsidy table
per period type:

{
    "fiscal_year": 2025,
    "uma_daily_value": "113.14",
    "imss": {"cap_uma_multiplier": "25", "employee": {...}, "employer": {...}},
    "infonavit": {"employer_rate": "0.05"},
    "labor": {"daily_hours": "8", ...},
    "periods": {
        "biweekly": {
            "isr": [{"lower_limit": "0.01", "fixed_fee": "0", "rate": "0.0192"}, ...],
            "subsidy": [{"lower_limit": "0.01", "fixed_fee": "234.20", "rate": "0"}, ...]
        },
        ...
    }
}

Brackets must be sorted by strictly ascending lower_limit; tables that are
not are rejected at load time with ConfigError instead of being re-sorted.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from nomina_engine.calculators.types import (
    ImssEmployeeRates,
    ImssEmployerRates,
    ImssRules,
    InfonavitRules,
    LaborRules,
    PeriodType,
    TaxBracket,
    TaxTable,
)
from nomina_engine.errors import ConfigError

logger = logging.getLogger(__name__)


def check_ascending(limits: Sequence[Decimal]) -> str | None:
    """Return an error message if limits are not strictly ascending."""
    for previous, current in zip(limits, limits[1:]):
        if current <= previous:
            return f"lower_limit {current} does not follow {previous} in ascending order"
    return None


# ============================================================================
# File schema
# ============================================================================


class BracketSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    lower_limit: Decimal = Field(ge=0)
    fixed_fee: Decimal = Field(ge=0)
    rate: Decimal = Field(ge=0, le=1)


class PeriodTablesSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    isr: list[BracketSchema] = Field(min_length=1)
    subsidy: list[BracketSchema] = Field(default_factory=list)

    @field_validator("isr", "subsidy")
    @classmethod
    def _sorted(cls, brackets: list[BracketSchema]) -> list[BracketSchema]:
        error = check_ascending([b.lower_limit for b in brackets])
        if error:
            raise ValueError(error)
        return brackets


class ImssEmployeeSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    excess_sickness: Decimal = Field(ImssEmployeeRates.excess_sickness, ge=0, le=1)
    cash_benefits: Decimal = Field(ImssEmployeeRates.cash_benefits, ge=0, le=1)
    pensioner_medical: Decimal = Field(ImssEmployeeRates.pensioner_medical, ge=0, le=1)
    disability_life: Decimal = Field(ImssEmployeeRates.disability_life, ge=0, le=1)
    severance_old_age: Decimal = Field(ImssEmployeeRates.severance_old_age, ge=0, le=1)


class ImssEmployerSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fixed_fee: Decimal = Field(ImssEmployerRates.fixed_fee, ge=0, le=1)
    excess_sickness: Decimal = Field(ImssEmployerRates.excess_sickness, ge=0, le=1)
    cash_benefits: Decimal = Field(ImssEmployerRates.cash_benefits, ge=0, le=1)
    pensioner_medical: Decimal = Field(ImssEmployerRates.pensioner_medical, ge=0, le=1)
    disability_life: Decimal = Field(ImssEmployerRates.disability_life, ge=0, le=1)
    childcare: Decimal = Field(ImssEmployerRates.childcare, ge=0, le=1)
    retirement: Decimal = Field(ImssEmployerRates.retirement, ge=0, le=1)
    severance_old_age: Decimal = Field(ImssEmployerRates.severance_old_age, ge=0, le=1)
    work_risk: Decimal = Field(ImssEmployerRates.work_risk, ge=0, le=1)


class ImssSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    cap_uma_multiplier: Decimal = Field(Decimal("25"), gt=0)
    excess_threshold_uma_multiplier: Decimal = Field(Decimal("3"), ge=0)
    employee: ImssEmployeeSchema = Field(default_factory=ImssEmployeeSchema)
    employer: ImssEmployerSchema = Field(default_factory=ImssEmployerSchema)


class InfonavitSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    employer_rate: Decimal = Field(Decimal("0.05"), ge=0, le=1)


class LaborSchema(BaseModel):
    model_config = ConfigDict(extra="forbid")

    daily_hours: Decimal = Field(Decimal("8"), gt=0)
    regular_overtime_multiplier: Decimal = Field(Decimal("1"), ge=0)
    double_overtime_multiplier: Decimal = Field(Decimal("2"), ge=0)
    triple_overtime_multiplier: Decimal = Field(Decimal("3"), ge=0)
    vacation_premium_rate: Decimal = Field(Decimal("0.25"), ge=0)
    aguinaldo_days: Decimal = Field(Decimal("15"), ge=0)
    double_time_weekly_cap_hours: Decimal | None = Field(None, ge=0)


class TaxYearSchema(BaseModel):
    """Validated content of one ``<year>.json`` file."""

    model_config = ConfigDict(extra="forbid")

    fiscal_year: int = Field(ge=2000)
    description: str | None = None
    uma_daily_value: Decimal = Field(gt=0)
    imss: ImssSchema = Field(default_factory=ImssSchema)
    infonavit: InfonavitSchema = Field(default_factory=InfonavitSchema)
    labor: LaborSchema = Field(default_factory=LaborSchema)
    periods: dict[PeriodType, PeriodTablesSchema]

    def to_tables(self) -> dict[PeriodType, TaxTable]:
        imss = ImssRules(
            employee=ImssEmployeeRates(**self.imss.employee.model_dump()),
            employer=ImssEmployerRates(**self.imss.employer.model_dump()),
            cap_uma_multiplier=self.imss.cap_uma_multiplier,
            excess_threshold_uma_multiplier=self.imss.excess_threshold_uma_multiplier,
        )
        infonavit = InfonavitRules(**self.infonavit.model_dump())
        labor = LaborRules(**self.labor.model_dump())

        return {
            period_type: TaxTable(
                fiscal_year=self.fiscal_year,
                period_type=period_type,
                isr_brackets=tuple(TaxBracket(**b.model_dump()) for b in tables.isr),
                subsidy_brackets=tuple(
                    TaxBracket(**b.model_dump()) for b in tables.subsidy
                ),
                uma_daily_value=self.uma_daily_value,
                imss=imss,
                infonavit=infonavit,
                labor=labor,
            )
            for period_type, tables in self.periods.items()
        }


def parse_tax_year(data: dict, source: str = "<data>") -> dict[PeriodType, TaxTable]:
    """Validate raw tax-year data, raising ConfigError on any schema violation."""
    try:
        schema = TaxYearSchema.model_validate(data)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"invalid tax table in {source}: {problems}") from e
    return schema.to_tables()


def validate_tax_table(table: TaxTable) -> TaxTable:
    """Check an in-memory table with the same rules the file schema applies."""
    scope = {"fiscal_year": table.fiscal_year, "period_type": table.period_type.value}
    if not table.isr_brackets:
        raise ConfigError("ISR table is empty", **scope)
    if table.uma_daily_value <= 0:
        raise ConfigError("UMA daily value must be positive", **scope)
    for label, brackets in (("ISR", table.isr_brackets), ("subsidy", table.subsidy_brackets)):
        error = check_ascending([b.lower_limit for b in brackets])
        if error:
            raise ConfigError(f"{label} table: {error}", **scope)
    return table


# ============================================================================
# Providers
# ============================================================================


class TaxConfigProvider(Protocol):
    """Supplies tax tables scoped by fiscal year and period type."""

    def get_tax_table(self, fiscal_year: int, period_type: PeriodType | str) -> TaxTable:
        ...


class StaticTaxConfigProvider:
    """In-memory provider for pre-built tables."""

    def __init__(self, tables: Iterable[TaxTable]):
        self._tables: dict[tuple[int, PeriodType], TaxTable] = {}
        for table in tables:
            validate_tax_table(table)
            self._tables[(table.fiscal_year, table.period_type)] = table

    def get_tax_table(self, fiscal_year: int, period_type: PeriodType | str) -> TaxTable:
        period_type = PeriodType(period_type)
        table = self._tables.get((fiscal_year, period_type))
        if table is None:
            raise ConfigError(
                "no tax table configured",
                fiscal_year=fiscal_year,
                period_type=period_type.value,
            )
        return table


class FileTaxConfigProvider:
    """Loads ``<year>.json`` tax tables from a directory, caching per year."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)
        self._year_cache: dict[int, dict[PeriodType, TaxTable]] = {}

    def get_tax_table(self, fiscal_year: int, period_type: PeriodType | str) -> TaxTable:
        period_type = PeriodType(period_type)
        tables = self.load_year(fiscal_year)
        table = tables.get(period_type)
        if table is None:
            raise ConfigError(
                "period type missing from tax table file",
                fiscal_year=fiscal_year,
                period_type=period_type.value,
            )
        return table

    def load_year(self, fiscal_year: int) -> dict[PeriodType, TaxTable]:
        if fiscal_year in self._year_cache:
            return self._year_cache[fiscal_year]

        path = self.directory / f"{fiscal_year}.json"
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ConfigError(f"file {path} not found", fiscal_year=fiscal_year) from None
        except json.JSONDecodeError as e:
            raise ConfigError(f"file {path} is not valid JSON: {e}", fiscal_year=fiscal_year) from e

        tables = parse_tax_year(data, source=str(path))
        declared = next(iter(tables.values())).fiscal_year if tables else fiscal_year
        if declared != fiscal_year:
            raise ConfigError(
                f"file {path} declares fiscal_year {declared}", fiscal_year=fiscal_year
            )

        logger.info(
            "Loaded tax tables for %s (%s)",
            fiscal_year,
            ", ".join(sorted(t.value for t in tables)),
        )
        self._year_cache[fiscal_year] = tables
        return tables
