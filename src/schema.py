from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, List, Dict, Any
from datetime import datetime


# ==============================================================================
# ENUMS
# ==============================================================================

class ActionType(str, Enum):
    API_CALL = "API_CALL"        # transaksjon mot registeret (krever innlogging)
    FORM_FILL = "FORM_FILL"      # skjema på Min side
    NAVIGATION = "NAVIGATION"    # lenke til hjelpesenteret
    INFO_ONLY = "INFO_ONLY"      # ren informasjon, kan omformuleres


class MatchMethod(str, Enum):
    SESSION = "session"
    REGEX = "regex"
    SEMANTIC = "semantic"
    FUZZY = "fuzzy"
    KEYWORD = "keyword"
    LLM = "gpt"
    MENU = "menu"
    CHIP_TOKEN = "chip_token"
    FLOW = "flow"
    BLOCKED = "blocked"
    NONE = "none"


class ReplyKind(str, Enum):
    ANSWER = "answer"                  # INFO / FORM / NAVIGATION svar
    ACTION_DONE = "action_done"        # transaksjon utført
    ACTION_FAILED = "action_failed"
    PROMPT = "prompt"                  # flyt venter på mer input
    LOGIN_REQUIRED = "login_required"
    MENU = "menu"
    BLOCK = "block"
    FLOW_END = "flow_end"
    ERROR = "error"


class ChipLookupStep(str, Enum):
    AWAITING_CHIP = "awaiting_chip"
    AWAITING_OWNERSHIP_CONFIRM = "awaiting_ownership_confirm"
    AWAITING_SMS_CONFIRM = "awaiting_sms_confirm"


class LoginHelpStep(str, Enum):
    AWAITING_PHONE = "awaiting_phone"
    AWAITING_SMS_CONFIRM = "awaiting_sms_confirm"


class EscalationStep(str, Enum):
    AWAITING_RESOLUTION_FEEDBACK = "awaiting_resolution_feedback"
    AWAITING_EMAIL = "awaiting_email"
    COMPLETED = "completed"


class EscalationTrigger(str, Enum):
    POST_ANSWER = "post_answer"
    BLOCK = "block"
    NO_PROGRESS = "no_progress"
    FRUSTRATION = "frustration"


class DirectFlow(str, Enum):
    PET_DECEASED = "pet_deceased"
    WRONG_INFO = "wrong_info"
    OWNERSHIP_TRANSFER = "ownership_transfer"


# ==============================================================================
# REGISTRY RECORDS (normalisert form)
# ==============================================================================

@dataclass
class Owner:
    owner_id: str
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None


@dataclass
class Pet:
    animal_id: str
    name: str
    species: str
    breed: Optional[str] = None
    chip_number: Optional[str] = None
    gender: Optional[str] = None
    birth_date: Optional[str] = None
    lost: bool = False
    deceased: bool = False
    sms_alert: bool = False
    push_alert: bool = False


@dataclass
class Tag:
    tag_id: str
    tag_type: str          # "qr" | "smart"
    animal_id: Optional[str] = None
    status: str = "inactive"


@dataclass
class OwnerContext:
    owner: Owner
    pets: List[Pet] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)

    @property
    def active_pets(self) -> List[Pet]:
        return [p for p in self.pets if not p.deceased]


@dataclass
class ChipLookupResult:
    found: bool
    chip_number: str
    pet: Optional[Pet] = None
    owner: Optional[Owner] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChipLookupResult":
        pet = data.get("pet")
        owner = data.get("owner")
        return cls(
            found=data.get("found", False),
            chip_number=data.get("chip_number", ""),
            pet=Pet(**pet) if pet else None,
            owner=Owner(**owner) if owner else None,
        )


@dataclass
class ActionResult:
    success: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AuthContext:
    """Identitet fra innloggingen (OTP / BankID). Leveres av transportlaget."""
    authenticated: bool = False
    owner_id: Optional[str] = None


# ==============================================================================
# INTENTS & PLAYBOOK
# ==============================================================================

@dataclass
class CanonicalIntent:
    intent_id: str
    category: str
    subcategory: str
    description: str
    keywords: List[str] = field(default_factory=list)
    info_text: Optional[str] = None

    @property
    def label(self) -> str:
        """ReportLostPet -> 'report lost pet'"""
        out = []
        for ch in self.intent_id:
            if ch.isupper() and out:
                out.append(" ")
            out.append(ch.lower())
        return "".join(out).strip()


@dataclass(frozen=True)
class PlaybookEntry:
    """
    Kvalitetssikret svar/handling for en kanonisk intent.
    Uforanderlig innenfor én resolusjon.
    """
    intent: str
    action_type: ActionType
    answer_text: str
    category: str = ""
    subcategory: str = ""
    keywords: str = ""                     # kommaseparert
    required_slots: tuple = ()
    action: Optional[str] = None
    action_params: tuple = ()              # (key, value)-par
    requires_login: bool = False
    payment_required: bool = False
    payment_amount: Optional[int] = None
    help_url: Optional[str] = None
    is_active: bool = True

    def keyword_list(self) -> List[str]:
        return [k.strip().lower() for k in self.keywords.split(",") if k.strip()]


# ==============================================================================
# SESSION STATE
# ==============================================================================

@dataclass
class EscalationContext:
    intent: Optional[str]
    matched_by: Optional[str]
    semantic_score: Optional[float]
    trigger: EscalationTrigger
    category: Optional[str] = None
    subcategory: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["trigger"] = self.trigger.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EscalationContext":
        data = dict(data)
        data["trigger"] = EscalationTrigger(data["trigger"])
        return cls(**data)


@dataclass
class SessionState:
    """
    Tilstand per samtale.

    Maks én av chip_lookup_flow / direct_intent_flow / login_help_step / escalation_flow
    styrer tolkningen av neste melding. enter_*() rydder de andre.
    """
    intent: Optional[str] = None
    playbook_ref: Optional[str] = None
    collected_data: Dict[str, Any] = field(default_factory=dict)
    awaiting_input: Optional[str] = None

    chip_lookup_flow: Optional[ChipLookupStep] = None
    chip_lookup_result: Optional[ChipLookupResult] = None

    direct_intent_flow: Optional[DirectFlow] = None
    direct_flow_step: Optional[str] = None

    login_help_step: Optional[LoginHelpStep] = None

    escalation_flow: Optional[EscalationStep] = None
    escalation_context: Optional[EscalationContext] = None
    has_escalated: bool = False

    menu_options: List[str] = field(default_factory=list)
    unresolved_turns: int = 0
    transcript: List[Dict[str, str]] = field(default_factory=list)

    # === Flow bookkeeping ===

    def clear_flows(self):
        self.chip_lookup_flow = None
        self.chip_lookup_result = None
        self.direct_intent_flow = None
        self.direct_flow_step = None
        self.login_help_step = None
        if self.escalation_flow != EscalationStep.COMPLETED:
            self.escalation_flow = None
        self.escalation_context = None

    def enter_chip_lookup(self, step: ChipLookupStep):
        if self.chip_lookup_flow is None:
            self.clear_flows()
        self.chip_lookup_flow = step

    def enter_login_help(self, step: LoginHelpStep):
        if self.login_help_step is None:
            self.clear_flows()
        self.login_help_step = step

    def enter_direct_flow(self, flow: DirectFlow, step: str):
        if self.direct_intent_flow != flow:
            self.clear_flows()
        self.direct_intent_flow = flow
        self.direct_flow_step = step

    def enter_escalation(self, step: EscalationStep, context: Optional[EscalationContext] = None):
        if self.escalation_flow not in (EscalationStep.AWAITING_RESOLUTION_FEEDBACK,
                                        EscalationStep.AWAITING_EMAIL):
            self.clear_flows()
        self.escalation_flow = step
        if context is not None:
            self.escalation_context = context

    def active_flow(self) -> Optional[str]:
        """Navn på flyten som styrer neste tur (nøkkel i flow-registeret)."""
        if self.chip_lookup_flow is not None:
            return "chip_lookup"
        if self.login_help_step is not None:
            return "login_help"
        if self.direct_intent_flow is not None:
            return self.direct_intent_flow.value
        if self.escalation_flow in (EscalationStep.AWAITING_RESOLUTION_FEEDBACK,
                                    EscalationStep.AWAITING_EMAIL):
            return "escalation"
        return None

    def reset_intent(self):
        """Etter fullført transaksjon: glem intent og slots, behold escalation-vakten."""
        self.intent = None
        self.playbook_ref = None
        self.collected_data = {}
        self.awaiting_input = None
        self.menu_options = []

    # === Serialization (Redis) ===

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent,
            "playbook_ref": self.playbook_ref,
            "collected_data": self.collected_data,
            "awaiting_input": self.awaiting_input,
            "chip_lookup_flow": self.chip_lookup_flow.value if self.chip_lookup_flow else None,
            "chip_lookup_result": self.chip_lookup_result.to_dict() if self.chip_lookup_result else None,
            "direct_intent_flow": self.direct_intent_flow.value if self.direct_intent_flow else None,
            "direct_flow_step": self.direct_flow_step,
            "login_help_step": self.login_help_step.value if self.login_help_step else None,
            "escalation_flow": self.escalation_flow.value if self.escalation_flow else None,
            "escalation_context": self.escalation_context.to_dict() if self.escalation_context else None,
            "has_escalated": self.has_escalated,
            "menu_options": self.menu_options,
            "unresolved_turns": self.unresolved_turns,
            "transcript": self.transcript,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionState":
        def _enum(enum_cls, value):
            return enum_cls(value) if value else None

        chip_result = data.get("chip_lookup_result")
        esc_context = data.get("escalation_context")
        return cls(
            intent=data.get("intent"),
            playbook_ref=data.get("playbook_ref"),
            collected_data=data.get("collected_data") or {},
            awaiting_input=data.get("awaiting_input"),
            chip_lookup_flow=_enum(ChipLookupStep, data.get("chip_lookup_flow")),
            chip_lookup_result=ChipLookupResult.from_dict(chip_result) if chip_result else None,
            direct_intent_flow=_enum(DirectFlow, data.get("direct_intent_flow")),
            direct_flow_step=data.get("direct_flow_step"),
            login_help_step=_enum(LoginHelpStep, data.get("login_help_step")),
            escalation_flow=_enum(EscalationStep, data.get("escalation_flow")),
            escalation_context=EscalationContext.from_dict(esc_context) if esc_context else None,
            has_escalated=data.get("has_escalated", False),
            menu_options=data.get("menu_options") or [],
            unresolved_turns=data.get("unresolved_turns", 0),
            transcript=data.get("transcript") or [],
        )


# ==============================================================================
# RESOLUTION OUTPUT
# ==============================================================================

@dataclass
class MatchDebugInfo:
    """Diagnostikk per melding, lagres som metadata på assistentmeldingen."""
    match_method: MatchMethod = MatchMethod.NONE
    semantic_score: Optional[float] = None
    semantic_best_intent: Optional[str] = None
    fuzzy_score: Optional[float] = None
    fuzzy_detail: Optional[str] = None
    gpt_confidence: Optional[float] = None
    final_intent: Optional[str] = None
    block_reason: Optional[str] = None
    normalized_text: Optional[str] = None
    corrections: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["match_method"] = self.match_method.value
        return data


@dataclass
class ResolutionResult:
    intent: Optional[str]
    playbook: Optional[PlaybookEntry]
    method: MatchMethod
    debug: MatchDebugInfo
    blocked: bool = False

    @property
    def resolved(self) -> bool:
        return self.intent is not None


@dataclass
class BotReply:
    text: str
    kind: ReplyKind
    intent: Optional[str] = None
    actions_executed: List[str] = field(default_factory=list)


@dataclass
class EscalationPayload:
    conversation_id: str
    email: str
    intent: Optional[str] = None
    matched_by: Optional[str] = None
    semantic_score: Optional[float] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    trigger: Optional[str] = None
    transcript: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class EscalationResult:
    success: bool
    escalation_id: Optional[str] = None
    is_duplicate: bool = False
    error: Optional[str] = None


# ==============================================================================
# CONSTANTS
# ==============================================================================

class Config:
    """
    Systemkonfigurasjon
    """

    # === LLM Configuration ===
    # intent-gate (klassifisering)
    INTENT_GATE_MODEL = "gpt-4o-mini"
    INTENT_GATE_TEMPERATURE = 0.0
    INTENT_GATE_MAX_TOKENS = 100

    # omformulering av svar
    PARAPHRASE_MODEL = "gpt-4o-mini"
    PARAPHRASE_TEMPERATURE = 0.3
    PARAPHRASE_MAX_TOKENS = 400

    # === Embedding ===
    EMBEDDING_MODEL = "text-embedding-3-small"
    EMBEDDING_DIMENSION = 1536
    EMBEDDING_INFO_MAX_CHARS = 500

    # === Cascade Thresholds ===
    SEMANTIC_ACCEPT_THRESHOLD = 0.78
    SEMANTIC_BLOCK_THRESHOLD = 0.65
    FUZZY_ZONE_MIN = 0.60
    FUZZY_ACCEPT_THRESHOLD = 0.75
    LLM_CONFIDENCE_THRESHOLD = 0.70
    KEYWORD_MIN_MATCHES = 2
    BLOCK_SUGGESTIONS = 3

    # === Paraphrase Validator ===
    PARAPHRASE_MAX_LENGTH_RATIO = 2.5
    PARAPHRASE_MAX_EXTRA_SENTENCES = 1

    # === Registry ===
    CHIP_MIN_DIGITS = 9
    CHIP_MAX_DIGITS = 15
    UNREGISTERED_CHIP_PREFIX = "578"
    REGISTRATION_FEE_NOK = 676
    SAFE_TEST_PHONE = "91341434"

    # === Escalation ===
    ESCALATION_MAX_PER_SESSION = 1
    ESCALATION_MAX_PER_EMAIL_PER_DAY = 3
    ESCALATION_DEDUPE_HOURS = 24
    ESCALATION_NO_PROGRESS_TURNS = 3

    # === Session ===
    SESSION_TTL_SECONDS = 1800  # 30 min
    TRANSCRIPT_MAX_MESSAGES = 20

    # === Links ===
    HELP_CENTER_URL = "https://www.dyreid.no/hjelp"
    MIN_SIDE_URL = "https://minside.dyreid.no"


# ==============================================================================
# RESPONSE TEMPLATES
# ==============================================================================

RESPONSE_TEMPLATES: Dict[str, str] = {
    "LOGIN_REQUIRED": """For å hjelpe deg med dette må du være innlogget.

🔐 Logg inn med engangskode (OTP) sendt på SMS til mobilnummeret ditt, eller via Min side: {min_side_url}

Når du er innlogget kan jeg utføre dette for deg direkte.""",

    "BLOCK": """Beklager, jeg er ikke sikker nok på hva du spør om til å gi et riktig svar.

Prøv gjerne å formulere spørsmålet på en annen måte, eller se hjelpesenteret: {help_center_url}""",

    "BLOCK_SUGGESTIONS": "Mente du kanskje:\n{suggestions}",

    "FALLBACK_ERROR": """Beklager, noe gikk galt under behandlingen av meldingen din.

Vennligst prøv igjen om litt. Hvis problemet vedvarer kan du kontakte kundeservice via {help_center_url}""",

    "ACTION_FAILED": """Beklager, det lyktes ikke: {message}

Du kan prøve igjen, eller kontakte kundeservice via {help_center_url}""",

    "HELP_LINK": "Les mer: {url}",

    "PAYMENT_INFO": "Dette koster {amount} kr. Du får en betalingslink på SMS.",

    "SLOT_PROMPT_PHONE": "Hvilket mobilnummer gjelder det? Oppgi 8 siffer.",

    "SLOT_PROMPT_TAG": "Hvilken tag gjelder det? Oppgi tag-ID (f.eks. TAG-001).{tag_hint}",

    "SLOT_PROMPT_PET": "Hvilket dyr gjelder det?\n{pet_list}\n\nSvar med nummer eller navn.",

    "SLOT_RETRY": "Jeg klarte ikke å lese det. {prompt}",

    "MENU": "Hva lurer du på om {category}?\n{options}\n\nSvar med nummeret.",

    "CANCELLED": "Ok, jeg har avbrutt. Hva annet kan jeg hjelpe deg med?",
}


# ==============================================================================
# DISALLOWED TOPICS (Anti-drift for paraphrase)
# ==============================================================================

DISALLOWED_TOPIC_PATTERNS: Dict[str, str] = {
    "veterinary": r"veterinær|dyrlege|klinikk|behandling",
    "pricing": r"\d+\s*(?:kr|kroner|nok)\b|\bpris(?:en)?\b|\bkoster\b|\bgebyr|\bgratis\b",
    "contact_redirect": r"ring (?:oss|til)|kontakt (?:oss|kundeservice|support)|kundeservice|send (?:oss )?(?:en )?e-?post|support@|\+47",
}


# ==============================================================================
# LOGGING SCHEMA
# ==============================================================================

@dataclass
class ChatbotInteraction:
    """Strukturert logg av én tur, for revisjon og offline evaluering."""
    conversation_id: str
    user_question: str
    bot_response: str
    response_method: str
    matched_intent: Optional[str]
    matched_category: Optional[str]
    actions_executed: List[str]
    authenticated: bool
    response_time_ms: int
    timestamp: datetime = field(default_factory=datetime.now)
