"""Heritage detection used to route chancery approvals to museum review."""

from visita_workflow.core.records import ChurchRecord, Classification, is_heritage

HERITAGE_FOUNDING_YEAR = 1900


def should_require_heritage_review(
    classification: str | None,
    founding_year: int | None = None,
    has_historical_documents: bool = False,
    architecturally_significant: bool = False,
) -> bool:
    """Return True when a church should be validated by a museum researcher.

    A church qualifies when it is classified ICP or NCT, was founded before
    1900, has significant historical documents, or is marked architecturally
    significant.
    """
    if is_heritage(classification):
        return True
    if founding_year is not None and founding_year < HERITAGE_FOUNDING_YEAR:
        return True
    return has_historical_documents or architecturally_significant


def record_requires_heritage_review(record: ChurchRecord) -> bool:
    return should_require_heritage_review(record.classification, record.founding_year)


def suggest_heritage_classification(
    classification: str | None,
    founding_year: int | None = None,
) -> Classification:
    """Suggest a classification for an unclassified church.

    An explicit heritage classification is kept. Churches founded before 1900
    are suggested as Important Cultural Property.
    """
    if is_heritage(classification):
        return classification  # type: ignore[return-value]
    if founding_year is not None and founding_year < HERITAGE_FOUNDING_YEAR:
        return "ICP"
    return "non_heritage"
