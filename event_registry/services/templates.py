"""
Default registry items by event category and venue type.

A category matches a canonical key when either string contains the other, so
"yoga", "yoga flow" and "restorative-yoga" all resolve to the yoga templates.
Keys are tried in ``CATALOG`` declaration order and the first hit wins.
"""

from dataclasses import asdict, dataclass

from event_registry.core.errors import coerce_enum
from event_registry.models.events import VenueType
from event_registry.models.materials import Provider, RegistryType


@dataclass(frozen=True)
class TemplateItem:
    item: str
    registry_type: str
    quantity_description: str = ""
    max_quantity: int | None = None
    is_required: bool = False
    provider: str = Provider.PARTICIPANT.value
    notes: str = ""

    def as_material_fields(self) -> dict:
        return asdict(self)


_REQ = RegistryType.REQUIRED.value
_LEND = RegistryType.LENDING.value
_ORG = Provider.ORGANIZER.value


# ---------- Yoga & movement ----------
YOGA_HOME = (
    TemplateItem("Yoga Mat", _REQ, "1 per person", is_required=True, notes="Please bring your own mat"),
    TemplateItem("Water Bottle", _REQ, "1 per person", is_required=True, notes="Stay hydrated!"),
    TemplateItem("Extra Yoga Mats", _LEND, "If you have extras", notes="Bring extras to lend to others who need them"),
    TemplateItem("Yoga Blocks", _LEND, "If you have extras", notes="Extra blocks for participants to borrow"),
    TemplateItem("Yoga Straps", _LEND, "If you have extras", notes="Extra straps for participants to borrow"),
)

YOGA_STUDIO = (
    TemplateItem("Yoga Mats", _REQ, "15 available", 15, provider=_ORG, notes="Reserve a mat if you need one"),
    TemplateItem("Yoga Blocks", _REQ, "10 pairs available", 10, provider=_ORG, notes="Reserve blocks if you need them"),
    TemplateItem("Yoga Straps", _REQ, "15 available", 15, provider=_ORG, notes="Reserve a strap if you need one"),
    TemplateItem("Water Bottle", _REQ, "1 per person", is_required=True, notes="Please bring your own water"),
)

# ---------- Potluck & food ----------
_POTLUCK_DISHES = (
    TemplateItem("Main Dish", _REQ, "Serves 6-8", 3, notes="What are you bringing? (e.g., lasagna, curry, casserole)"),
    TemplateItem("Side Dish", _REQ, "Serves 6-8", 4, notes="What are you bringing? (e.g., salad, vegetables, rice)"),
    TemplateItem("Appetizer", _REQ, "Serves 6-8", 3, notes="What are you bringing? (e.g., hummus & veggies, chips & dip)"),
    TemplateItem("Dessert", _REQ, "Serves 6-8", 2, notes="What are you bringing? (e.g., cookies, cake, fruit)"),
    TemplateItem("Beverages", _REQ, "For the group", 2, notes="What are you bringing? (e.g., juice, tea, soda)"),
)

POTLUCK_HOME = _POTLUCK_DISHES + (
    TemplateItem("Extra Plates & Utensils", _LEND, "If you have extras", notes="Reusable plates, bowls, utensils to lend"),
    TemplateItem("Extra Serving Dishes", _LEND, "If you have extras", notes="Large bowls or platters to lend"),
)

POTLUCK_STUDIO = _POTLUCK_DISHES + (
    TemplateItem("Plates & Utensils", _REQ, "Provided by venue", provider=_ORG, notes="Venue provides plates and utensils"),
)

# ---------- Music jam ----------
_BRING = "What instrument are you bringing?"

MUSIC_HOME = (
    TemplateItem("Guitar (Acoustic)", _REQ, "How many?", notes=_BRING),
    TemplateItem("Guitar (Electric)", _REQ, "How many?", notes=_BRING),
    TemplateItem("Keyboard/Piano", _REQ, "How many?", notes=_BRING),
    TemplateItem("Drums/Percussion", _REQ, "What type?", notes="Specify the instrument (e.g., djembe, congas, drum kit)"),
    TemplateItem("Bass", _REQ, "How many?", notes=_BRING),
    TemplateItem("Other Instruments", _REQ, "What type?", notes="Specify the instrument (e.g., violin, flute, ukulele)"),
    TemplateItem("Extra Instruments to Lend", _LEND, "If you have extras", notes="Bring extra instruments for others to try out"),
    TemplateItem("Extra Cables & Accessories", _LEND, "If you have extras", notes="Extra guitar cables, picks, straps, etc."),
)

MUSIC_STUDIO = (
    TemplateItem("PA System", _REQ, "1 available", 1, provider=_ORG, notes="Sound system provided by venue"),
    TemplateItem("Microphones", _REQ, "4 available", 4, provider=_ORG, notes="Reserve if you need one"),
    TemplateItem("Guitar (Acoustic)", _REQ, "How many?", notes=_BRING),
    TemplateItem("Guitar (Electric)", _REQ, "How many?", notes=_BRING),
    TemplateItem("Keyboard/Piano", _REQ, "How many?", notes=_BRING),
    TemplateItem("Drums/Percussion", _REQ, "What type?", notes="Specify the instrument"),
    TemplateItem("Bass", _REQ, "How many?", notes=_BRING),
    TemplateItem("Other Instruments", _REQ, "What type?", notes="Specify the instrument"),
    TemplateItem("Extra Instruments to Lend", _LEND, "If you have extras", notes="Bring extra instruments for others to try out"),
)

# ---------- Meditation & mindfulness ----------
MEDITATION_HOME = (
    TemplateItem("Meditation Cushion", _REQ, "1 per person", notes="Bring your own cushion or pillow"),
    TemplateItem("Blanket", _REQ, "1 per person", notes="Optional for warmth during meditation"),
    TemplateItem("Extra Cushions", _LEND, "If you have extras", notes="Extra cushions or pillows to lend"),
    TemplateItem("Extra Blankets", _LEND, "If you have extras", notes="Extra blankets for participants"),
)

MEDITATION_STUDIO = (
    TemplateItem("Meditation Cushions", _REQ, "20 available", 20, provider=_ORG, notes="Reserve a cushion if you need one"),
    TemplateItem("Blankets", _REQ, "20 available", 20, provider=_ORG, notes="Reserve a blanket if you need one"),
)

# ---------- Art & craft ----------
ART_HOME = (
    TemplateItem("Art Supplies", _REQ, "What are you bringing?", notes="Specify what you're bringing (e.g., paint, brushes, paper)"),
    TemplateItem("Extra Art Supplies", _LEND, "If you have extras", notes="Extra supplies for others to use"),
    TemplateItem("Drop Cloths", _LEND, "If you have extras", notes="To protect surfaces"),
)

ART_STUDIO = (
    TemplateItem("Basic Art Supplies", _REQ, "Provided by venue", provider=_ORG, notes="Paper, pencils, basic materials included"),
    TemplateItem("Specialty Supplies", _REQ, "What are you bringing?", notes="Any specialty materials you want to use"),
)

# ---------- Study group / workshop (same for both venues) ----------
STUDY_GROUP = (
    TemplateItem("Laptop/Tablet", _REQ, "1 per person", notes="If needed for the session"),
    TemplateItem("Notebook & Pen", _REQ, "1 per person", is_required=True, notes="For taking notes"),
    TemplateItem("Reference Materials", _REQ, "What are you bringing?", notes="Books, handouts, or resources to share"),
    TemplateItem("Extra Laptops", _LEND, "If you have extras", notes="Extra devices to lend"),
)

# ---------- Garden / outdoor work (same for both venues) ----------
GARDEN_WORK = (
    TemplateItem("Garden Gloves", _REQ, "1 pair per person", is_required=True, notes="Bring your own gloves"),
    TemplateItem("Garden Tools", _REQ, "What are you bringing?", notes="Specify tools (e.g., shovel, rake, pruners)"),
    TemplateItem("Water Bottle", _REQ, "1 per person", is_required=True, notes="Stay hydrated!"),
    TemplateItem("Extra Garden Tools", _LEND, "If you have extras", notes="Extra tools for others to use"),
    TemplateItem("Extra Gloves", _LEND, "If you have extras", notes="Extra pairs for participants"),
)


def _by_venue(home: tuple, studio: tuple) -> dict[str, tuple]:
    return {VenueType.HOME.value: home, VenueType.STUDIO.value: studio}


# Declaration order is match priority.
CATALOG: dict[str, dict[str, tuple]] = {
    "yoga": _by_venue(YOGA_HOME, YOGA_STUDIO),
    "movement": _by_venue(YOGA_HOME, YOGA_STUDIO),
    "potluck": _by_venue(POTLUCK_HOME, POTLUCK_STUDIO),
    "food": _by_venue(POTLUCK_HOME, POTLUCK_STUDIO),
    "music": _by_venue(MUSIC_HOME, MUSIC_STUDIO),
    "meditation": _by_venue(MEDITATION_HOME, MEDITATION_STUDIO),
    "mindfulness": _by_venue(MEDITATION_HOME, MEDITATION_STUDIO),
    "art": _by_venue(ART_HOME, ART_STUDIO),
    "craft": _by_venue(ART_HOME, ART_STUDIO),
    "study": _by_venue(STUDY_GROUP, STUDY_GROUP),
    "workshop": _by_venue(STUDY_GROUP, STUDY_GROUP),
    "garden": _by_venue(GARDEN_WORK, GARDEN_WORK),
    "outdoor": _by_venue(GARDEN_WORK, GARDEN_WORK),
}


def _normalize(category: str | None) -> str:
    return (category or "").strip().lower()


def match_category(category: str | None) -> str | None:
    """Return the canonical catalog key for ``category``, or None."""
    key = _normalize(category)
    if not key:
        return None
    for canonical in CATALOG:
        if canonical in key or key in canonical:
            return canonical
    return None


def get_template(category: str | None, venue_type: VenueType | str) -> list[TemplateItem]:
    venue = coerce_enum(VenueType, venue_type, "venue_type")
    canonical = match_category(category)
    if canonical is None:
        return []
    return list(CATALOG[canonical][venue])


def has_template(category: str | None) -> bool:
    return match_category(category) is not None


def available_template_categories() -> list[str]:
    return list(CATALOG)
