# src/physlab_report/__init__.py
"""
Lab-report calculations for one measurement series.

Modules:
  - parsing: tolerant number parsing of typed readings
  - expression: safe formula evaluator
  - model: series / quantity / row types and validation
  - aggregation: per-row averages and effective uncertainties
  - propagation: numerical error propagation
  - indirect: derived quantities and error budgets
  - regression: least-squares line with parameter uncertainties
  - rounding: Rule of Gold rounding and formatting
  - promotion: swapping a quantity onto an axis
  - summary / plotting: result tables, JSON and figures
"""

# Core types
from .config import DEFAULT_SETTINGS, EngineSettings, load_settings, settings_from_mapping
from .model import (
    DerivedQuantity,
    FormulaIssue,
    MeasurementRow,
    QuantityConfig,
    Series,
    SeriesValidationError,
    empty_row,
    formula_issues,
    resize_rows,
    set_repetitions,
    validate_series,
    with_reading,
)

# Calculations
from .parsing import mean_of_readings, parse_reading
from .expression import ExpressionError, compile_expression, evaluate_expression
from .aggregation import RowAggregate, aggregate_row
from .propagation import Propagated, SensitivityTerm, fold_formulas, propagate
from .indirect import DerivedResult, ErrorBudgetTerm, compute_derived_quantities, error_budget
from .regression import (
    FitResult,
    RegressionPoint,
    build_regression_points,
    fit_linear_regression,
    fit_series,
)
from .rounding import (
    PLACEHOLDER,
    FormattedMeasurement,
    RoundedUncertainty,
    format_measurement,
    format_value,
    round_uncertainty,
)
from .promotion import promote_variable_role

# I/O
from .loader import load_series, series_from_dict, series_to_dict, write_series

__all__ = [
    "DEFAULT_SETTINGS",
    "EngineSettings",
    "load_settings",
    "settings_from_mapping",
    "DerivedQuantity",
    "FormulaIssue",
    "MeasurementRow",
    "QuantityConfig",
    "Series",
    "SeriesValidationError",
    "empty_row",
    "formula_issues",
    "resize_rows",
    "set_repetitions",
    "validate_series",
    "with_reading",
    "mean_of_readings",
    "parse_reading",
    "ExpressionError",
    "compile_expression",
    "evaluate_expression",
    "RowAggregate",
    "aggregate_row",
    "Propagated",
    "SensitivityTerm",
    "propagate",
    "fold_formulas",
    "DerivedResult",
    "ErrorBudgetTerm",
    "compute_derived_quantities",
    "error_budget",
    "FitResult",
    "RegressionPoint",
    "build_regression_points",
    "fit_linear_regression",
    "fit_series",
    "PLACEHOLDER",
    "FormattedMeasurement",
    "RoundedUncertainty",
    "format_measurement",
    "format_value",
    "round_uncertainty",
    "promote_variable_role",
    "load_series",
    "series_from_dict",
    "series_to_dict",
    "write_series",
]
