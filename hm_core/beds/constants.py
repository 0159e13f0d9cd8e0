# hm_core/beds/constants.py


class BedStatus:
    """
    Baseline bed statuses. The vocabulary is open: hospitals may add more
    through settings.HM_BED_STATUSES_EXTRA (see hm_core.beds.vocabulary).
    """
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    CLEANING = "cleaning"

    BASELINE = (AVAILABLE, OCCUPIED, MAINTENANCE, CLEANING)


# Baseline bed types; extend with settings.HM_BED_TYPES_EXTRA.
BASELINE_BED_TYPES = (
    "general",
    "private",
    "semi_private",
    "icu",
    "pediatric",
    "maternity",
    "isolation",
)

DEFAULT_BED_TYPE = "general"
