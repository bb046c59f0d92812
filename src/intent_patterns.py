"""
Intent Pattern Table - Deterministiske regex-regler og kategorimenyer.

Prioritet er eksplisitt: lavere tall vinner. Mer spesifikke mønstre MÅ ha lavere
prioritet enn generelle mønstre som også matcher samme tekst. SPECIFICITY_PAIRS
dokumenterer parene og check_pattern_priorities() verifiserer dem.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Tuple

from intent_catalog import intents_for_category
from schema import RESPONSE_TEMPLATES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntentPattern:
    priority: int
    intent: str
    regex: str

    def compiled(self) -> "re.Pattern":
        return _compile(self.regex)


_CACHE = {}


def _compile(regex: str) -> "re.Pattern":
    pattern = _CACHE.get(regex)
    if pattern is None:
        pattern = re.compile(regex, re.IGNORECASE)
        _CACHE[regex] = pattern
    return pattern


# ==============================================================================
# PATTERN TABLE
# ==============================================================================

_PATTERN_ROWS = [
    # === ID-søk ===
    ("WhyIDMark", r"hvorfor.*id.?merk|bør.*(?:id.?)?merk|fordel.*(?:chip|id.?merk)|id.?merk.*(?:fordel|viktig)|poenget med.*id|viktig.*id.?merk|hvorfor.*chippe"),
    ("CheckContactData", r"kontrollere.*kontakt|kontaktdata.*(?:riktig|oppdater)|sjekke.*kontakt|verifisere.*kontakt|kontaktinfo|stemmer.*kontakt"),
    ("InactiveRegistration", r"ikke søkbar|kjaledyr.*søkbar|dyr.*søkbar|inaktiv.*registr|registrering.*inaktiv|dukker ikke opp.*søk|finnes ikke.*søk"),

    # === App ===
    ("AppTargetAudience", r"hvem.*(?:passer|kan bruke|laget for|bør (?:laste|bruke|ha)|målgrupp).*(?:app|appen|dyreid)|(?:app|appen).*(?:for meg|for alle|for hundeeier|for katteeier)|hvem.*bør.*laste.*ned"),
    ("AppMinSide", r"min side.*(?:app|appen)|(?:app|appen).*min side|profil.*appen|min side.*funksjon|funksjon.*(?:app|appen).*min side|administrere.*min side.*app"),
    ("AppAccess", r"laste ned.*(?:app|dyreid)|installere.*(?:app|dyreid)|tilgang.*app|(?:app|dyreid).*nedlast|hente.*app|(?:app|dyreid).*(?:iphone|android)"),
    ("AppLoginIssue", r"(?:app|appen).*(?:logg|login|innlogg)|(?:logg|login|innlogg).*(?:app|appen)|(?:app|appen).*(?:nekter|feiler)"),
    ("AppBenefits", r"(?:hvorfor|fordel|funksjoner|bra med|tilbyr|nytte|nyttig|hva får).*(?:app|appen)|(?:app|appen).*(?:fordel|funksjoner|nytte)"),
    ("FamilySharingRequirement", r"(?:treng|krev|forutsett|behøv|må|nødvendig|påkrevd).*(?:dyreid.?(?:\+|pluss)|abonnement|premium).*(?:familie|del)|familiedeling.*(?:dyreid.?(?:\+|pluss)|abonnement|krav|uten)|(?:dyreid.?(?:\+|pluss)).*(?:krav|nødvendig|familiedeling|deling|familie)|(?:familiedeling|dele).*uten.*(?:dyreid|abonnement)"),
    ("SubscriptionComparison", r"basis.*(?:plus|pluss|\+)|(?:dyreid\+|dyreid pluss)(?!.*(?:familie|del))|forskjell.*abonnement|sammenlign.*(?:abonnement|dyreid)|(?:vs|kontra|forskjell).*(?:dyreid|abonnement)|inkludert i.*dyreid\+|skiller.*dyreid"),
    ("AppCost", r"koster.*(?:app|appen|dyreid)|(?:app|appen|dyreid).*(?:gratis|kost|pris)|pris.*(?:app|appen)|abonnementspris|betale.*(?:app|appen)"),

    # === Min side ===
    ("EmailError", r"(?:feilmelding|feil|problem).*e-?post|ugyldig.*e-?post|e-?post.*(?:feil|fungerer ikke)|(?:kan ikke|klarer ikke).*(?:endre.*)?e-?post"),
    ("PhoneError", r"(?:feilmelding|feil|problem).*(?:telefon|tlf|nummer)|ugyldig.*nummer|telefon.*(?:feil|vises feil|fungerer ikke)|(?:kan ikke|klarer ikke).*(?:endre.*)?(?:telefon|nummer)"),
    ("LoginProblem", r"(?:får|greier|klarer) ikke.*(?:logg|komm)|hvorfor.*(?:får|kan) (?:jeg )?ikke.*logg|(?:logg|login|innlogg).*(?:fungerer|virker).*ikke|(?:logg|login|innlogg).*(?:feiler|feil(?:er|melding)?)|problem.*(?:innlogg|login|å logg)|feil.*(?:ved|med).*innlogg|innloggingsproblemer|feil passord|(?:umulig|ikke mulig).*(?:å )?logg|feilmelding.*(?:logg|login)|(?:logg|login).*problem|(?:noe|alt).*(?:galt|feil).*(?:innlogg|login)"),
    ("LoginIssue", r"logg.*inn|innlogg|login|passord|bankid.*(?:logg|inn)|hvordan.*komm.*inn|hjelp.*(?:med )?(?:å )?logg"),
    ("SMSEmailNotification", r"(?:hvorfor|har).*(?:fått|mottatt).*(?:sms|e-?post|melding)|(?:sms|e-?post).*(?:fra|varsel).*(?:dyreid|oss)|dyreid.*(?:sms|e-?post|sendte|kontaktet)|(?:fått|mottatt).*(?:sms|e-?post|melding|tekstmelding).*(?:dyreid|fra)"),
    ("ProfileVerification", r"har jeg.*(?:min side|profil|konto)|finnes.*(?:profil|konto)|eksisterer.*(?:konto|profil)|er jeg.*(?:registrert|i dyreid|i systemet)|har jeg en"),
    ("AddContactInfo", r"legge til.*telefon|legge til.*e-?post|flere.*nummer|flere.*kontakt"),
    ("WrongInfo", r"feil informasjon|feil.*(?:opplysning|data|info)(?!.*eier)|korrigere|endre.*opplysning|feil.*navn|endre.*navn|rett.*opp|feil.*profil(?!.*eier)|oppdater.*(?:navn|info)|feilregistrert|dyrenavn.*feil|navn.*feil|endre.*rase|feil.*rase|endre.*kjønn|feil.*kjønn|endre.*fødsel|feil.*fødsel|informasjon.*stemmer.*ikke"),
    ("MissingPetProfile", r"mangler.*(?:dyr|kjæledyr|hund|katt)|(?:dyr|hund|katt|kjæledyr).*(?:vises ikke|borte|mangler|finnes ikke).*(?:min side|profil)|(?:et av|kjæledyret).*borte.*(?:fra|på)|(?:kjæledyr|dyr|hund|katt).*(?:finnes ikke|vises ikke).*min side"),
    ("OwnershipTransferDead", r"(?:eier|person).*(?:er )?død|dødsfall.*eier|arv.*(?:dyr|hund|katt)|(?:eierskift|overf[øo]r).*(?:død|dødsfall|avdød)|avdød.*(?:person|eier)|tilhørte.*avdød|gått bort|overta.*(?:dyr|hund|katt).*(?:eier.*)?(?:død|døde|gått bort)|(?:eierskift|overf[øo]r).*(?:etter|når).*(?:død|gått bort)"),
    ("PetDeceased", r"kjæledyr.*(?:er )?død|(?:hund|katt|dyr).*(?:har )?(?:dødd?|døde|er død)|avlivet|bortgang|melde.*(?:fra.*)?(?:død|avliv)|registrere.*(?:død|avliv)|fjerne.*død|(?:er )?dø(?:dt|d)|(?:hund|katt|dyr).*dø(?:dt|d)"),
    ("GDPRDelete", r"slett(?:e)?.*(?:meg|konto|profil|data|all|personopplysning)|gdpr.*slett|fjerne?.*(?:profil|data|personopplysning)|personvern.*slett|slettet fra"),
    ("GDPRExport", r"eksporter.*data|mine data|gdpr.*eksport|personvern.*data"),
    ("ViewMyPets", r"mine dyr|se dyr|dyrene mine|vis dyr"),

    # === Eierskifte ===
    ("OwnershipTransferApp", r"eierskift.*(?:app|mobil)|(?:app|appen|mobil(?:app)?).*eierskift|overf[øo]r.*(?:i |via |gjennom |med )?(?:app|appen)|(?:app|appen).*(?:overf[øo]r|bytte eier)|eieroverføring.*(?:app|appen)|bytte eier.*(?:via|i|gjennom).*(?:app|appen)"),
    ("OwnershipTransferCost", r"(?:kost|pris|gebyr|avgift|betale|gratis|billig|dyrt).*(?:eierskift|overf[øo]r.*eier|eieroverføring)|(?:eierskift|overf[øo]r.*eier|eieroverføring).*(?:kost|pris|gebyr|betale|gratis|avgift)|hva (?:koster|må.*betale).*(?:eierskift|bytte eier|overf[øo]r)|pris.*eieroverføring"),
    ("NKKOwnership", r"nkk|norsk kennel|stambokført|rasehund.*eierskift"),
    ("OwnershipTransferWeb", r"eierskift.*min side|via min side|eierskift|selge|solgt|ny eier|overfør.*eier|bytte eier|overf[øo]re.*(?:hund|katt|dyr|eierskap)|eieroverføring"),

    # === Smart Tag ===
    ("SmartTagQRActivation", r"qr.*smart.?tag|smart.?tag.*qr|aktivere.*qr.*tag|qr.?kode.*smart"),
    ("SmartTagActivation", r"aktivere.*smart.?tag|smart.?tag.*(?:aktivere|setup|oppsett)|sette opp.*smart|komme i gang.*smart|(?:bruke|starte|ta i bruk).*smart.?tag|smart.?tag.*(?:kom i gang)"),
    ("SmartTagMultiple", r"flere.*(?:smart\s*)?tag|bare.*(?:en|én).*(?:tag|kobl)|smart.?tag.*flere|koblet til én|koble.*flere|(?:to|tre|nummer to|nummer 2|andre).*smart.?tag|smart.?tag.*nummer|(?:kan ikke|får ikke).*koble.*(?:til )?flere"),
    ("SmartTagConnection", r"koble.*smart.?tag|smart.?tag.*kobl|bluetooth.*(?:tag|smart)|(?:kan ikke|får ikke).*koble|legge til.*smart|smart.?tag.*(?:pairing|tilkobling|bluetooth)|tilkobling.*smart"),
    ("SmartTagMissing", r"(?:finner ikke|forsvunnet|borte|vises ikke|mistet).*smart.?tag|smart.?tag.*(?:forsvunnet|borte|vises ikke|forsvant)"),
    ("SmartTagPosition", r"(?:posisjon|lokasjon|plassering|gps|sporing).*(?:smart.?tag|oppdater)|smart.?tag.*(?:posisjon|lokasjon|plassering|gps|sporing)"),
    ("SmartTagSound", r"(?:smart.?tag|tag).*(?:lyd|piper?|bråk|alarm|ringer|lager lyd)|(?:lyd|piper?|bråk).*(?:smart.?tag|tag)"),

    # === QR-brikke ===
    ("QRTagLost", r"mistet.*(?:qr|brikke)|(?:qr|brikke).*(?:mistet|borte|forsvunnet|falt av)|tapt.*(?:qr|brikke)|mista.*(?:qr|brikke)|(?:hund|katt).*mistet.*(?:qr|brikke)"),
    ("QRRequiresIDMark", r"(?:må|treng|krev|behøv|forutsett).*(?:id.?merk|chip|microchip).*(?:qr|brikke)|(?:qr|brikke).*(?:krav|uten).*(?:chip|id)|(?:id.?merk|chip).*(?:krav|nødvendig).*(?:qr|brikke)|(?:chip|chippet).*for.*qr"),
    ("QRPricingModel", r"qr.*(?:abonnement|engang|pris|kost|betal|månedlig)|(?:abonnement|engang|pris|kost|betal|månedlig).*qr|(?:koster|pris).*(?:qr|brikke)|(?:qr|brikke).*(?:koster|pris)"),
    ("QRBenefits", r"(?:fordel|nytte|verdt|hvorfor).*(?:qr|brikke)|(?:qr|brikke).*(?:nytte|fordel|verdt)"),
    ("QRTagActivation", r"aktivere.*(?:qr|brikke)|(?:qr|brikke).*aktiver|(?:sette|ta).*(?:opp|i bruk).*(?:qr|brikke)|(?:starte|bruke).*(?:qr|brikke)|(?:qr|brikke).*(?:oppsett|komme i gang)|(?:første|gang).*(?:qr|brikke)"),
    ("QRTagContactInfo", r"kontaktinfo.*qr|synlig.*kontakt.*skann|hvem ser.*qr"),
    ("QRScanResult", r"hva (?:skjer|vises|kommer).*(?:skann|qr)|(?:skann|qr).*(?:resultat|hva)|(?:noen|når).*skann"),
    ("QRUpdateContact", r"oppdatere.*kontakt.*qr|endre.*info.*brikke|qr.*kontakt.*endre"),
    ("QRCompatibility", r"(?:qr|brikke).*(?:hund.*katt|katt.*hund)|passer.*(?:qr|brikke)|kompatib.*qr|qr.*(?:for|passer).*(?:alle|katt|hund|kanin|dyr)|(?:katt|hund|kanin).*(?:ha )?qr|qr.*(?:for|kompatib)|(?:hvilke|alle).*dyr.*qr"),
    ("TagSubscriptionExpiry", r"utløper.*abonnement|abonnement.*utløp|tag.*inaktiv"),

    # === Registrering / utland ===
    ("UnregisteredChip578", r"578|uregistrert.*(?:brikke|chip)|(?:norsk|norge).*chip.*ikke|chip.*(?:uregistrert|ikke registrert|ikke funnet|ikke i|mangler)|ikke.*forhåndsbetalt"),
    ("ForeignRegistrationCost", r"(?:kost|pris|gebyr|avgift|betale|gratis).*(?:registrer|utenlandsregistrering)|(?:utenlandsregistrering|utenlands.*registrer).*(?:kost|pris|gebyr|avgift)|hva koster.*registrer|676|registreringsavgift.*(?:utenlandsk|utland)|(?:utenlandsk|utland).*(?:dyr|hund|katt).*(?:gratis|kost|pris|gebyr|avgift)|registrering.*kost|kost.*registrering"),
    ("ForeignPedigree", r"stamtavle|pedigree|fci|rasehund.*(?:utland|import)|(?:utland|import).*rasehund|utenlandsk rasehund"),
    ("ForeignRegistration", r"registrer.*(?:i )?norge|(?:utenlands|import|utland).*registrer|registrer.*(?:utland|import)|(?:hund|katt|dyr).*(?:fra )?utland"),

    # === Savnet/Funnet ===
    ("LostFoundInfo", r"savnet.*funnet.*(?:fungerer|tjenest|virker|info)|hvordan.*savnet.*funnet|savnet og funnet|savnet.funnet.*(?:info|tjenest)|informasjon.*savnet"),
    ("SearchableMisuse", r"misbruk.*søkbar|søkbar.*(?:misbruk|sikkerhet|trygt)|(?:kan|noen).*misbruk.*søkbar"),
    ("SearchableInfo", r"søkbar.*1-?2-?3|hvordan.*søkbar"),
    ("ReportFoundPet", r"(?:funnet|kommet til rette|kommet hjem|funnet igjen|er tilbake|kom tilbake|kom hjem).*(?:dyr|hund|katt|kjæledyr)|(?:dyr|hund|katt|kjæledyr).*(?:funnet|kommet til rette|kommet hjem|er tilbake)|avmelde.*savnet"),
    ("ReportLostPet", r"savnet|melde.*(?:savnet|borte)|(?:hund|katt|dyr|kjæledyr).*(?:borte|forsvunnet|rømte|stakk av|forsvant)|mistet.*(?:hund|katt|dyr)|rapportere.*(?:savnet|borte)"),

    # === Familiedeling ===
    ("FamilySharingBenefits", r"(?:hvorfor|fordel|nytte|verdt|bra med|grunner|hva (?:er|får)).*familiedeling|familiedeling.*(?:fordel|nytte|verdt|verdi)"),
    ("FamilySharingNonFamily", r"(?:dele|deling|familiedeling).*(?:venn|nabo|hundelufter|ikke.*familie|bare.*for.*familie)|(?:dele|deling|familiedeling).*andre(?!.*(?:gjøre|endre|tilgang|rettighet))|(?:andre|venn|nabo).*(?:dele|tilgang|familiedeling)|(?:ikke|utenfor|bare).*(?:familie|familiemedlem).*(?:dele|tilgang)|(?:hvem).*(?:jeg )?dele.*med"),
    ("FamilySharingRequest", r"(?:forespørsel|invitasjon).*(?:familie|akseptert|godkjen|avvist|venter|mottatt|status|problem)|(?:familie|deling).*(?:forespørsel|invitasjon)|(?:sendt|ikke mottatt|venter).*(?:forespørsel|invitasjon)"),
    ("FamilySharingPermissions", r"(?:rettigheter|tillatelser|begrensninger).*(?:deling|familie|delt)|(?:kan|hva kan).*(?:de|den|delt.*(?:bruker|person)|familiemedlem).*(?:endre|gjøre|tilgang|se)|gjøre endringer.*deling|rettigheter.*delt|hva kan.*(?:andre|de|delt)|familiedeling.*(?:tillatels|rettighet|begrens|hva kan)|(?:delt|familiemedlem).*(?:bruker|person).*(?:endre|gjøre)|kan.*delt.*(?:endre|gjøre|oppdatere)|(?:hva har|hva kan).*(?:de|dem|delt|deler).*(?:tilgang|gjøre|endre|se)|(?:jeg )?deler med.*tilgang"),
    ("FamilySharing", r"sette opp.*(?:deling|familie)|(?:dele|deling).*(?:tilgang|familie)|familiemedlem|(?:legge til|invitere).*(?:familiemedlem|partner|familie)|gi.*(?:partner|familie).*tilgang|(?:hvordan|komme i gang|steg).*dele|familiedeling"),
    ("FamilyAccessLost", r"ser ikke.*delt|mistet.*tilgang.*deling|familie.*borte"),
    ("FamilySharingExisting", r"familiedeling.*eksisterende|deling.*allerede.*kjæledyr"),

    # === Identitet / generelt ===
    ("WrongOwner", r"(?:feil|gal|annen).*(?:eier|person).*(?:registrert|står)|registrert.*(?:på|hos).*(?:feil|gal|annen)|(?:dyr|hund|katt).*(?:på|tilhører|står på).*(?:feil|gal|annen|noen andre)|feil.*eier|(?:eier|eierskap).*feil"),
    ("PetNotInSystem", r"finnes ikke.*(?:system|register)|(?:dyr|hund|katt).*(?:finnes|dukker|er).*ikke|finner ikke.*(?:dyr|hund|katt)|ikke (?:i )?(?:registeret|systemet)|mangler.*register|(?:hund|katt|dyr).*ikke registrert"),
    ("ChipLookup", r"chip.?(?:nummer|søk|sjekk|oppslag|registrering)|søke?.*(?:opp )?chip|finne.*(?:eier.*chip|dyr.*chip)|(?:slå|søke?).*opp.*(?:chip|id)|id.?(?:nummer|søk).*(?:søk|oppslag)|(?:hvem|finne).*eier.*chip|fant.*(?:en|et).*(?:katt|hund|dyr).*chip"),
    ("NewRegistration", r"registrere.*(?:nytt?|ny).*(?:dyr|hund|katt|valp|kattunge)|(?:nytt?|ny).*(?:dyr|hund|katt|valp|kattunge).*registrer|ny.*registrering|(?:nyregistrering|førstegangsregistrering)|(?:hvordan|første gang).*registrer|^registrer.*(?:hund|katt|dyr|valp)$|registrere.*(?:hund|katt|dyr|valp)(?:\s+(?:i|hos|på)\s+)?(?:dyreid)?$"),
    ("GeneralInquiry", r"generell|hjelp med|lurer på|spørsmål om"),
]

INTENT_PATTERNS: List[IntentPattern] = sorted(
    [IntentPattern(priority=(i + 1) * 10, intent=intent, regex=regex)
     for i, (intent, regex) in enumerate(_PATTERN_ROWS)],
    key=lambda p: p.priority,
)


# (spesifikk, generell, eksempeltekst som matcher begge)
SPECIFICITY_PAIRS: List[Tuple[str, str, str]] = [
    ("LoginProblem", "LoginIssue", "jeg får ikke logget inn på min side"),
    ("AppLoginIssue", "LoginIssue", "hvordan logge inn i appen"),
    ("OwnershipTransferApp", "OwnershipTransferWeb", "hvordan gjør jeg eierskifte i appen"),
    ("OwnershipTransferCost", "OwnershipTransferWeb", "hva koster eierskifte"),
    ("OwnershipTransferDead", "OwnershipTransferWeb", "eierskifte etter at eier er død"),
    ("NKKOwnership", "OwnershipTransferWeb", "eierskifte av nkk registrert hund"),
    ("SmartTagQRActivation", "SmartTagActivation", "aktivere qr koden på smart tag"),
    ("SmartTagMultiple", "SmartTagConnection", "får ikke koblet til flere smart tag"),
    ("QRTagLost", "ReportLostPet", "mistet qr brikken til hunden"),
    ("ReportFoundPet", "ReportLostPet", "hunden som var savnet er funnet igjen"),
    ("LostFoundInfo", "ReportLostPet", "hvordan fungerer savnet og funnet"),
    ("FamilySharingRequirement", "FamilySharing", "trenger jeg dyreid+ for familiedeling"),
    ("FamilySharingBenefits", "FamilySharing", "hvorfor burde jeg ha familiedeling"),
    ("ForeignRegistrationCost", "ForeignRegistration", "hva koster det å registrere hund fra utlandet i norge"),
    ("EmailError", "LoginIssue", "feilmelding på e-post når jeg logger inn"),
]


def get_pattern(intent: str) -> Optional[IntentPattern]:
    for p in INTENT_PATTERNS:
        if p.intent == intent:
            return p
    return None


def match_pattern(text: str) -> Optional[str]:
    """Første treff i prioritert rekkefølge vinner."""
    for p in INTENT_PATTERNS:
        if p.compiled().search(text):
            return p.intent
    return None


def check_pattern_priorities() -> List[str]:
    """
    Verifiserer SPECIFICITY_PAIRS mot tabellen.

    Returns:
        Liste med feilbeskrivelser (tom liste = OK)
    """
    problems = []
    for specific, general, example in SPECIFICITY_PAIRS:
        p_spec = get_pattern(specific)
        p_gen = get_pattern(general)
        if p_spec is None or p_gen is None:
            problems.append(f"missing pattern for pair {specific}/{general}")
            continue
        if not p_spec.compiled().search(example):
            problems.append(f"{specific} does not match its example: {example!r}")
        if not p_gen.compiled().search(example):
            problems.append(f"{general} does not match example: {example!r}")
        if p_spec.priority >= p_gen.priority:
            problems.append(f"{specific} (priority {p_spec.priority}) must precede {general} (priority {p_gen.priority})")
    return problems


# ==============================================================================
# CATEGORY MENU
# ==============================================================================

@dataclass
class CategoryMenu:
    category: str
    title: str
    triggers: List[str] = field(default_factory=list)

    def options(self) -> List[str]:
        return [i.intent_id for i in intents_for_category(self.category)]

    def render(self) -> str:
        lines = [f"{n}. {intent.subcategory}"
                 for n, intent in enumerate(intents_for_category(self.category), start=1)]
        return RESPONSE_TEMPLATES["MENU"].format(category=self.title, options="\n".join(lines))


CATEGORY_MENUS: List[CategoryMenu] = [
    CategoryMenu("ID-søk", "ID-søk og chip", ["id-søk", "id søk", "id-merking", "id-merke", "chip"]),
    CategoryMenu("DyreID-appen", "DyreID-appen", ["app", "appen", "dyreid-appen", "dyreid appen"]),
    CategoryMenu("Min side", "Min side", ["min side", "profil", "profilen"]),
    CategoryMenu("Eierskifte", "eierskifte", ["eierskifte", "eierskift", "eieroverføring"]),
    CategoryMenu("Smart Tag", "Smart Tag", ["smart tag", "smart tags"]),
    CategoryMenu("QR-brikke", "QR-brikke", ["qr-brikke", "qr-brikka", "qr tag", "qr-tag"]),
    CategoryMenu("Utenlandsregistrering", "utenlandsregistrering", ["utenlandsregistrering", "utenlands", "utland", "import"]),
    CategoryMenu("Savnet/Funnet", "savnet og funnet", ["savnet", "funnet", "savnet og funnet", "savnet/funnet", "savnet & funnet"]),
    CategoryMenu("Familiedeling", "familiedeling", ["familiedeling", "deling"]),
]

_MENU_STRIP = re.compile(r"[?!.,:;]+")


def detect_category_menu(normalized_text: str) -> Optional[CategoryMenu]:
    """Treff bare når hele meldingen er et bredt emneord."""
    text = _MENU_STRIP.sub("", normalized_text).strip()
    if text.startswith("om "):
        text = text[3:].strip()
    for menu in CATEGORY_MENUS:
        if text in menu.triggers:
            logger.info(f"Category menu triggered: {menu.category}")
            return menu
    return None


def parse_menu_selection(text: str, options: List[str]) -> Optional[str]:
    stripped = _MENU_STRIP.sub("", text).strip()
    if not stripped.isdigit() or not options:
        return None
    index = int(stripped)
    if 1 <= index <= len(options):
        return options[index - 1]
    return None
