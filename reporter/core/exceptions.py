"""Error taxonomy for the scheduled report engine.

Every error that terminates a task run derives from ReportEngineError and
carries a human-readable message that is stored verbatim in the task's
last_error field.
"""


class ReportEngineError(Exception):
    """Base class for all report engine errors."""


class ConfigurationError(ReportEngineError):
    """Missing or incomplete profile, mapping, template or credentials."""


class IncompleteMapping(ConfigurationError):
    """One or more column mapping fields are empty."""

    def __init__(self, missing_fields: list[str]) -> None:
        self.missing_fields = missing_fields
        super().__init__(
            "Data mapping is incomplete. Please configure all columns in "
            f"Settings > Data Mapping (missing: {', '.join(missing_fields)})."
        )


class SchemaMismatchError(ReportEngineError):
    """A mapped table or column does not exist in the live schema."""


class UnknownTable(SchemaMismatchError):
    """The mapped table does not exist."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f'The table "{table}" does not exist in the database.')


class UnknownColumns(SchemaMismatchError):
    """Some mapped columns do not exist in the mapped table."""

    def __init__(self, table: str, missing: list[str]) -> None:
        self.table = table
        self.missing = missing
        super().__init__(
            f'The following columns could not be found in table "{table}": '
            f"{', '.join(missing)}. Please check your Data Mapping settings."
        )


class ConnectivityError(ReportEngineError):
    """Network, login or timeout failure reaching the data source."""


class SynthesisError(ReportEngineError):
    """The report content generation service failed."""


class DeliveryError(ReportEngineError):
    """The transport service failed to deliver a report. Never fails a task."""


class InvalidTransition(ReportEngineError):
    """A task status change that the state machine does not allow."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Illegal task status transition: {current} -> {target}")
