"""US state metadata used to reconcile state codes across datasets."""

from dataclasses import dataclass


@dataclass(frozen=True)
class StateMeta:
    fips: str
    abbrev: str
    name: str


_STATE_ROWS = [
    ("01", "AL", "Alabama"),
    ("02", "AK", "Alaska"),
    ("04", "AZ", "Arizona"),
    ("05", "AR", "Arkansas"),
    ("06", "CA", "California"),
    ("08", "CO", "Colorado"),
    ("09", "CT", "Connecticut"),
    ("10", "DE", "Delaware"),
    ("11", "DC", "District of Columbia"),
    ("12", "FL", "Florida"),
    ("13", "GA", "Georgia"),
    ("15", "HI", "Hawaii"),
    ("16", "ID", "Idaho"),
    ("17", "IL", "Illinois"),
    ("18", "IN", "Indiana"),
    ("19", "IA", "Iowa"),
    ("20", "KS", "Kansas"),
    ("21", "KY", "Kentucky"),
    ("22", "LA", "Louisiana"),
    ("23", "ME", "Maine"),
    ("24", "MD", "Maryland"),
    ("25", "MA", "Massachusetts"),
    ("26", "MI", "Michigan"),
    ("27", "MN", "Minnesota"),
    ("28", "MS", "Mississippi"),
    ("29", "MO", "Missouri"),
    ("30", "MT", "Montana"),
    ("31", "NE", "Nebraska"),
    ("32", "NV", "Nevada"),
    ("33", "NH", "New Hampshire"),
    ("34", "NJ", "New Jersey"),
    ("35", "NM", "New Mexico"),
    ("36", "NY", "New York"),
    ("37", "NC", "North Carolina"),
    ("38", "ND", "North Dakota"),
    ("39", "OH", "Ohio"),
    ("40", "OK", "Oklahoma"),
    ("41", "OR", "Oregon"),
    ("42", "PA", "Pennsylvania"),
    ("44", "RI", "Rhode Island"),
    ("45", "SC", "South Carolina"),
    ("46", "SD", "South Dakota"),
    ("47", "TN", "Tennessee"),
    ("48", "TX", "Texas"),
    ("49", "UT", "Utah"),
    ("50", "VT", "Vermont"),
    ("51", "VA", "Virginia"),
    ("53", "WA", "Washington"),
    ("54", "WV", "West Virginia"),
    ("55", "WI", "Wisconsin"),
    ("56", "WY", "Wyoming"),
    ("72", "PR", "Puerto Rico"),
]

STATES = [StateMeta(*row) for row in _STATE_ROWS]
FIPS_TO_ABBREV = {s.fips: s.abbrev for s in STATES}
ABBREV_TO_NAME = {s.abbrev: s.name for s in STATES}


def normalize_state_code(code):
    """
    Normalize a state code to its upper-case postal abbreviation.

    FIPS codes ("06", "6", 6) are translated; anything else is stripped and
    upper-cased. Missing codes return None.
    """
    if code is None:
        return None
    if isinstance(code, float):
        if code != code:
            return None
        if code.is_integer():
            code = int(code)
    text = str(code).strip().upper()
    if not text:
        return None
    if text.isdigit() and len(text) <= 2:
        return FIPS_TO_ABBREV.get(text.zfill(2), text)
    return text
