"""Application constants."""

USER_AGENT = "london-sqft/0.3 (+research; contact: configured-email)"
SQM_TO_SQFT = 10.7639
STAGES = (
    "parse-transactions",
    "parse-buildings",
    "match",
    "aggregate",
    "export",
)
STAGE_DEPENDENCIES = {
    "parse-transactions": (),
    "parse-buildings": (),
    "match": ("parse-transactions", "parse-buildings"),
    "aggregate": ("match",),
    "export": ("aggregate",),
}
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
MAX_INVALID_SAMPLES = 50
# Land Registry price paid rows carry no header.
PPD_COLUMNS = {
    "transaction_id": 0,
    "price": 1,
    "date": 2,
    "postcode": 3,
    "property_type": 4,
    "paon": 7,
    "saon": 8,
    "street": 9,
}
EPC_REQUIRED_COLUMNS = (
    "POSTCODE",
    "ADDRESS1",
    "ADDRESS2",
    "ADDRESS3",
    "TOTAL_FLOOR_AREA",
    "PROPERTY_TYPE",
    "LODGEMENT_DATE",
)
EPC_OPTIONAL_COLUMNS = ("UPRN", "BUILT_FORM")
EPC_ARCHIVE_MEMBER = "certificates.csv"
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "source",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
