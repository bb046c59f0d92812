"""
Intent Catalog - Kanoniske intents og standard playbook for DyreID-support.

Katalogen er kilden for:
- allowlist til LLM intent-gate
- embeddings-tekst til semantisk indeks
- labels/nøkkelord til fuzzy fallback
- standard playbook-oppføringer som lastes inn i storage ved oppstart
"""

from typing import Dict, List, Optional

from schema import ActionType, CanonicalIntent, Config, PlaybookEntry


_HC = "https://www.dyreid.no"


# ==============================================================================
# CANONICAL INTENTS
# ==============================================================================
# (intent_id, category, subcategory, description, keywords)

_INTENT_ROWS = [
    # === ID-søk ===
    ("WhyIDMark", "ID-søk", "Hvorfor bør jeg ID-merke?", "Fordeler med ID-merking av kjæledyr",
     ["id-merke", "merke", "chip", "hvorfor", "fordel"]),
    ("CheckContactData", "ID-søk", "Hvordan kontrollere at mine kontaktdata er riktig?", "Sjekke og oppdatere kontaktdata på chipnummer",
     ["kontaktdata", "kontrollere", "chipnummer", "riktig", "sjekke"]),
    ("InactiveRegistration", "ID-søk", "Kjæledyret mitt er ikke søkbart", "Dyr ikke synlig i søk",
     ["ikke søkbart", "søkbar", "finner ikke", "inaktiv", "søk"]),
    ("ChipLookup", "ID-søk", "Søk opp chipnummer", "Finne dyr og eier via chipnummer",
     ["chipnummer", "chip", "søk", "oppslag", "finne eier"]),
    ("WrongOwner", "ID-søk", "Dyret er registrert på feil eier", "Dyret står registrert på en annen person",
     ["feil eier", "registrert på", "annen eier", "eierskap"]),
    ("PetNotInSystem", "ID-søk", "Dyret finnes ikke i registeret", "Dyret dukker ikke opp i registeret",
     ["finnes ikke", "ikke registrert", "registeret", "systemet"]),
    ("NewRegistration", "ID-søk", "Registrere et nytt dyr", "Førstegangsregistrering av dyr",
     ["registrere", "nytt dyr", "valp", "kattunge", "ny registrering"]),
    ("UnregisteredChip578", "ID-søk", "Norsk chip som ikke er registrert", "578-brikke som ikke er registrert eller forhåndsbetalt",
     ["578", "uregistrert", "brikke", "chip", "forhåndsbetalt"]),

    # === DyreID-appen ===
    ("AppAccess", "DyreID-appen", "Hvordan får tilgang til DyreID-appen?", "Laste ned og logge inn i appen",
     ["app", "laste ned", "installere", "tilgang", "mobil"]),
    ("AppLoginIssue", "DyreID-appen", "Innlogging app", "Innloggingsprosess i appen",
     ["app", "logg inn", "innlogging", "app login"]),
    ("AppBenefits", "DyreID-appen", "Hvorfor app?", "Fordeler med DyreID-appen",
     ["hvorfor", "app", "fordeler", "funksjoner"]),
    ("AppTargetAudience", "DyreID-appen", "Hvem passer appen for?", "Hvem appen er laget for",
     ["hvem", "passer", "app", "dyreeier", "bruker"]),
    ("SubscriptionComparison", "DyreID-appen", "Hva er forskjellen på DyreID basis og DyreID+?", "Forskjeller mellom abonnementsplaner",
     ["basis", "plus", "dyreid+", "forskjell", "sammenligne"]),
    ("AppCost", "DyreID-appen", "Koster appen noe?", "Priser for app og abonnement",
     ["koster", "gratis", "pris", "app", "betale"]),
    ("AppMinSide", "DyreID-appen", "Min side (i appen)", "Min side-funksjonalitet i appen",
     ["min side", "app", "profil", "oversikt"]),

    # === Min side ===
    ("LoginIssue", "Min side", "Logg inn på Min side", "Hvordan logge inn på Min side",
     ["logg inn", "innlogging", "bankid", "passord"]),
    ("SMSEmailNotification", "Min side", "Hvorfor har jeg fått sms/e-post?", "Informasjon om mottatte meldinger",
     ["sms", "e-post", "melding", "varsel", "notifikasjon"]),
    ("ProfileVerification", "Min side", "Har jeg en Min side?", "Verifisere om profil eksisterer",
     ["har jeg", "min side", "profil", "konto", "finnes"]),
    ("LoginProblem", "Min side", "Hvorfor får jeg ikke logget meg inn?", "Feilsøke innloggingsproblemer",
     ["får ikke logget", "kan ikke logge", "feil", "innlogging feiler"]),
    ("EmailError", "Min side", "Feilmelding e-postadresse", "Feilmelding ved ugyldig e-postadresse",
     ["feilmelding", "e-post", "ugyldig", "e-postadresse", "feil epost"]),
    ("PhoneError", "Min side", "Feilmelding telefonnummer", "Feilmelding ved ugyldig telefonnummer",
     ["feilmelding", "telefonnummer", "ugyldig", "feil nummer"]),
    ("AddContactInfo", "Min side", "Legge til flere telefonnumre eller e-postadresser", "Administrere flere kontaktpunkter",
     ["legge til", "flere", "telefonnummer", "e-postadresse", "kontaktinfo"]),
    ("WrongInfo", "Min side", "Det er feil informasjon på min side", "Korrigere feil registrert informasjon",
     ["feil informasjon", "feil", "korrigere", "endre", "oppdatere"]),
    ("MissingPetProfile", "Min side", "Det mangler et kjæledyr på Min side", "Dyr vises ikke i profil",
     ["mangler", "vises ikke", "finner ikke", "dyr borte"]),
    ("PetDeceased", "Min side", "Kjæledyret mitt er dødt", "Håndtere avdøde kjæledyr",
     ["død", "dødt", "avdød", "avlivet", "bortgang"]),
    ("GDPRDelete", "Min side", "Slett meg", "GDPR sletting av profil",
     ["slett", "fjerne", "gdpr", "personvern", "slette konto"]),
    ("GDPRExport", "Min side", "Eksporter mine data", "GDPR dataeksport",
     ["eksporter", "mine data", "gdpr", "personvern", "dataeksport"]),
    ("ViewMyPets", "Min side", "Se mine dyr", "Vise oversikt over egne dyr",
     ["mine dyr", "se dyr", "dyrene mine", "hvilke dyr", "vis dyr"]),

    # === Eierskifte ===
    ("OwnershipTransferApp", "Eierskifte", "Eierskifte APP", "Hvordan gjøre eierskifte i appen",
     ["eierskifte", "app", "overføre", "mobil"]),
    ("OwnershipTransferCost", "Eierskifte", "Hva koster eierskifte?", "Priser for eierskifte",
     ["koster", "pris", "eierskifte", "gebyr"]),
    ("OwnershipTransferWeb", "Eierskifte", "Eierskifte på Web", "Hvordan gjøre eierskifte via Min side web",
     ["eierskifte", "web", "min side", "overføre", "selge", "solgt", "ny eier", "kjøpt"]),
    ("OwnershipTransferDead", "Eierskifte", "Eierskifte når eier er død", "Eierskifte ved dødsfall",
     ["eier er død", "dødsfall", "arv", "avdød eier"]),
    ("NKKOwnership", "Eierskifte", "Eierskifte av NKK-registrert hund", "NKK-spesifikk eierskifteprosess",
     ["nkk", "norsk kennel", "stambokført", "rasehund"]),

    # === Smart Tag ===
    ("SmartTagActivation", "Smart Tag", "Aktivering av Smart Tag", "Aktivere Smart Tag for iOS og Android",
     ["aktivere", "smart tag", "oppsett", "starte"]),
    ("SmartTagQRActivation", "Smart Tag", "Aktiver QR-koden på Smart Tag", "Aktivere QR-kode på Smart Tag",
     ["qr", "smart tag", "aktivere", "kode"]),
    ("SmartTagConnection", "Smart Tag", "Kan ikke koble til eller legge til taggen", "Koblingsproblemer med Smart Tag",
     ["koble", "bluetooth", "smart tag", "tilkobling", "fungerer ikke"]),
    ("SmartTagMissing", "Smart Tag", "Taggen var lagt til før men jeg finner den ikke", "Smart Tag ikke synlig i app",
     ["finner ikke", "forsvunnet", "borte", "smart tag", "lagt til"]),
    ("SmartTagPosition", "Smart Tag", "Posisjonen har ikke oppdatert seg på lenge", "Posisjonsproblemer med Smart Tag",
     ["posisjon", "oppdatert", "gps", "sporing", "lokasjon"]),
    ("SmartTagSound", "Smart Tag", "Taggen lager lyder av seg selv", "Uønskede lyder fra Smart Tag",
     ["lyd", "lyder", "piper", "bråk", "smart tag"]),
    ("SmartTagMultiple", "Smart Tag", "Flere tagger men får bare koblet til den ene", "Koble flere Smart Tags samtidig",
     ["flere", "tagger", "bare en", "koble", "smart tag"]),

    # === QR-brikke ===
    ("QRCompatibility", "QR-brikke", "Passer QR-brikke for hunder og katter?", "QR-brikke kompatibilitet med dyretyper",
     ["passer", "hund", "katt", "qr", "brikke", "kompatibel"]),
    ("QRRequiresIDMark", "QR-brikke", "Må kjæledyret være ID-merket for QR-brikke?", "Krav om ID-merking for QR-brikke",
     ["id-merket", "krav", "qr", "brikke", "chip"]),
    ("QRPricingModel", "QR-brikke", "Er det abonnement eller engangskostnad?", "Prismodell for QR-brikke",
     ["abonnement", "engangskostnad", "pris", "qr", "brikke"]),
    ("QRTagActivation", "QR-brikke", "Hvordan aktivere QR-brikken?", "Aktivering av QR-brikke",
     ["aktivere", "qr", "brikke", "skann", "tag"]),
    ("QRTagContactInfo", "QR-brikke", "Er kontaktinformasjonen synlig ved skanning?", "Synlighet av kontaktinfo ved skanning",
     ["kontaktinfo", "synlig", "tilgjengelig", "qr", "skann"]),
    ("QRScanResult", "QR-brikke", "Hva skjer når QR-koden skannes?", "Hva som skjer ved skanning av QR-kode",
     ["skanne", "qr", "hva skjer", "resultat"]),
    ("QRUpdateContact", "QR-brikke", "Hvordan oppdatere kontaktinfo på QR-brikke?", "Oppdatere kontaktinfo knyttet til QR-brikke",
     ["oppdatere", "kontaktinfo", "endre", "qr", "brikke"]),
    ("QRBenefits", "QR-brikke", "Hva er fordelen med DyreIDs QR-brikke?", "Fordeler med QR-brikke for ID-merkede dyr",
     ["fordel", "qr", "brikke", "hvorfor", "nytte"]),
    ("QRTagLost", "QR-brikke", "Jeg har mistet tag'en", "Erstatte tapt QR-brikke",
     ["mistet", "tapt", "ny brikke", "erstatte", "qr tag"]),
    ("TagSubscriptionExpiry", "QR-brikke", "Hva skjer hvis abonnementet utløper?", "Konsekvenser ved utløp av QR-abonnement",
     ["utløper", "abonnement", "slutt", "forny", "inaktiv"]),

    # === Utenlandsregistrering ===
    ("ForeignRegistration", "Utenlandsregistrering", "Hvordan få dyret registrert i Norge?", "Registreringsprosess for utenlandske dyr",
     ["registrere", "norge", "utenlands", "importert"]),
    ("ForeignRegistrationCost", "Utenlandsregistrering", "Hva koster det å registrere et dyr?", "Registreringspriser og gebyrer",
     ["koster", "pris", "registrering", "gebyr", "676"]),
    ("ForeignPedigree", "Utenlandsregistrering", "Utenlandsk hund med stamtavle", "Registrering av utenlandsk hund med stamtavle",
     ["stamtavle", "utenlandsk", "rasehund", "pedigree"]),

    # === Savnet/Funnet ===
    ("ReportLostPet", "Savnet/Funnet", "Hvordan melde mitt kjæledyr savnet?", "Prosess for savnetmelding",
     ["savnet", "mistet", "borte", "forsvunnet", "melde"]),
    ("ReportFoundPet", "Savnet/Funnet", "Kjæledyret har kommet til rette", "Markere kjæledyr som funnet",
     ["funnet", "til rette", "kommet hjem", "tilbake"]),
    ("LostFoundInfo", "Savnet/Funnet", "Hvordan fungerer Savnet & Funnet?", "Informasjon om Savnet & Funnet-tjenesten",
     ["savnet", "funnet", "hvordan", "fungerer", "tjeneste"]),
    ("SearchableInfo", "Savnet/Funnet", "Hvordan fungerer Søkbar på 1-2-3?", "Informasjon om Søkbar på 1-2-3-tjenesten",
     ["søkbar", "1-2-3", "fungerer", "hvordan"]),
    ("SearchableMisuse", "Savnet/Funnet", "Kan Søkbar på 1-2-3 misbrukes?", "Sikkerhet rundt Søkbar på 1-2-3",
     ["misbruk", "søkbar", "sikkerhet", "1-2-3"]),

    # === Familiedeling ===
    ("FamilySharingBenefits", "Familiedeling", "Hvorfor burde jeg ha familiedeling?", "Fordeler med familiedeling",
     ["hvorfor", "familiedeling", "fordeler", "dele"]),
    ("FamilySharingNonFamily", "Familiedeling", "Kan jeg dele tilgang med andre enn familien?", "Deling utenfor familiekretsen",
     ["andre", "ikke familie", "venner", "dele", "tilgang"]),
    ("FamilySharingRequirement", "Familiedeling", "Trenger jeg DyreID+ for familiedeling?", "Abonnementskrav for familiedeling",
     ["trenger", "dyreid+", "krav", "familiedeling", "abonnement"]),
    ("FamilySharingRequest", "Familiedeling", "Forespørsel ikke akseptert", "Hjelp med ubesvarte forespørsler om familiedeling",
     ["forespørsel", "akseptert", "venter", "invitasjon", "sendt"]),
    ("FamilySharing", "Familiedeling", "Hvordan dele tilgang med familiemedlemmer?", "Prosess for å dele tilgang med familiemedlemmer",
     ["familie", "deling", "del tilgang", "familiemedlem"]),
    ("FamilySharingPermissions", "Familiedeling", "Kan de jeg deler med gjøre endringer?", "Rettigheter for familiemedlemmer",
     ["endringer", "rettigheter", "redigere", "tillatelser", "deling"]),
    ("FamilyAccessLost", "Familiedeling", "Jeg ser ikke lenger kjæledyret som har blitt delt", "Tilgang til delt kjæledyr mistet",
     ["ser ikke", "delt", "mistet tilgang", "borte", "familiedeling"]),
    ("FamilySharingExisting", "Familiedeling", "Familiedeling med noen som allerede har kjæledyr?", "Deling med eksisterende dyreeiere",
     ["eksisterende", "allerede", "kjæledyr", "bruker", "deling"]),

    # === Generelt ===
    ("GeneralInquiry", "Generell", "Generell henvendelse", "Generelle spørsmål som ikke passer andre kategorier",
     ["hjelp", "spørsmål", "lurer på", "informasjon"]),
]


# ==============================================================================
# PLAYBOOK (kvalitetssikrede svar)
# ==============================================================================
# intent -> felter for PlaybookEntry. Intents uten oppføring får en avledet NAVIGATION-oppføring.

_PLAYBOOK: Dict[str, dict] = {
    "WhyIDMark": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="ID-merking gjør at kjæledyret ditt kan identifiseres og føres tilbake til deg hvis det kommer bort. "
                    "Chipen leses av med en skanner, og chipnummeret kobles til kontaktinformasjonen din i DyreID.",
        help_url=f"{_HC}/hjelp-id-sok/35-hvorfor-bor-jeg-id-merke",
    ),
    "CheckContactData": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Du kan kontrollere kontaktdataene dine ved å logge inn på Min side. "
                    "Der ser du hvilke dyr som er registrert på deg og hvilket telefonnummer og hvilken e-post som er knyttet til chipnummeret.",
        help_url=f"{_HC}/hjelp-id-sok/38-hvordan-kontrollere-kontaktdata-pa-mitt-chip-nr",
    ),
    "InactiveRegistration": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Hvis kjæledyret ikke er søkbart, er registreringen ofte ikke betalt eller ikke fullført. "
                    "Logg inn på Min side for å se status, og fullfør betalingen der om det står ubetalt.",
        help_url=f"{_HC}/hjelp-id-sok/22-kjaeledyret-mitt-er-ikke-sokbart",
    ),
    "ChipLookup": dict(
        action_type=ActionType.NAVIGATION,
        answer_text="Du kan søke opp et chipnummer på dyreid.no. Oppgi chipnummeret (9 til 15 siffer) her i chatten, så sjekker jeg det for deg.",
        help_url=f"{_HC}/hjelp-id-sok/38-hvordan-kontrollere-kontaktdata-pa-mitt-chip-nr",
    ),
    "WrongOwner": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Står dyret registrert på feil eier, må registrert eier gjennomføre et eierskifte. "
                    "Oppgi chipnummeret, så kan jeg sjekke registreringen og hjelpe deg å kontakte registrert eier.",
        help_url=f"{_HC}/hjelp-eierskifte/32-hvordan-foreta-eierskifte-av-et-kjaeledyr",
    ),
    "PetNotInSystem": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Finnes ikke dyret i registeret, er chipen sannsynligvis ikke registrert ennå. "
                    "Oppgi chipnummeret, så sjekker jeg det.",
    ),
    "NewRegistration": dict(
        action_type=ActionType.FORM_FILL,
        answer_text="Nye dyr registreres av veterinæren samtidig med ID-merkingen. "
                    "Etter registreringen får du tilgang til dyret på Min side.",
        help_url=f"{_HC}/hjelp-utenlandsregistrering/33-hvordan-fa-dyret-registrert-i-norge",
    ),
    "UnregisteredChip578": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text=f"En norsk chip (starter på 578) som ikke er forhåndsbetalt, må registreres mot et gebyr på {Config.REGISTRATION_FEE_NOK} kr. "
                    "Registreringen gjøres på Min side.",
        help_url=f"{_HC}/hjelp-utenlandsregistrering/34-hva-koster-det-a-registrere-et-dyr-i-norge",
    ),
    "AppAccess": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="DyreID-appen lastes ned gratis fra App Store eller Google Play. "
                    "Du logger inn med samme mobilnummer som er registrert på Min side.",
        help_url=f"{_HC}/dyreid-app/81-hvordan-far-jeg-tilgang-til-appen",
    ),
    "AppLoginIssue": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="I appen logger du inn med mobilnummeret ditt og en engangskode som sendes på SMS. "
                    "Bruk samme nummer som er registrert på Min side.",
        help_url=f"{_HC}/dyreid-app/82-innlogging-app",
    ),
    "AppBenefits": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="I appen har du alltid dyrenes ID-informasjon med deg, kan melde dyr savnet med ett trykk og får varsler når noen skanner QR-brikken.",
        help_url=f"{_HC}/dyreid-app/77-hvorfor-app",
    ),
    "AppTargetAudience": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Appen passer for alle som har et ID-merket kjæledyr registrert i DyreID.",
        help_url=f"{_HC}/dyreid-app/76-hvem-passer-appen-for",
    ),
    "SubscriptionComparison": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="DyreID basis er gratis og gir tilgang til dyrenes registrering. "
                    "DyreID+ gir i tillegg blant annet familiedeling, utvidede savnetvarsler og QR-funksjoner.",
        help_url=f"{_HC}/dyreid-app/79-hva-er-forskjellen-pa-basis-og-dyreid-plus-abonnement",
    ),
    "AppCost": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Appen er gratis å laste ned og bruke med DyreID basis. Enkelte funksjoner krever abonnementet DyreID+.",
        help_url=f"{_HC}/dyreid-app/78-koster-appen-noe",
    ),
    "AppMinSide": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Min side i appen viser de samme dyrene og kontaktopplysningene som Min side på nett.",
        help_url=f"{_HC}/dyreid-app/83-dyreid-app-min-side",
    ),
    "LoginIssue": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Du logger inn på Min side med mobilnummeret ditt og en engangskode (OTP) som sendes på SMS, eller med BankID.",
        help_url=f"{_HC}/hjelp-min-side/53-logg-inn-pa-min-side",
    ),
    "LoginProblem": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Får du ikke logget inn, sjekk at du bruker mobilnummeret som er registrert på dyret, og at engangskoden ikke er utløpt.",
        help_url=f"{_HC}/hjelp-min-side/17-hvorfor-far-jeg-ikke-logget-meg-inn-pa-min-side",
    ),
    "SMSEmailNotification": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="DyreID sender SMS eller e-post ved eierskifte, savnetmelding, betaling og når registreringen må bekreftes.",
        help_url=f"{_HC}/hjelp-min-side/23-hvorfor-har-jeg-fatt-sms-e-post",
    ),
    "ProfileVerification": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Alle som har et dyr registrert i DyreID har en Min side. Logg inn med mobilnummeret som er registrert på dyret.",
        help_url=f"{_HC}/hjelp-min-side/24-har-jeg-en-min-side",
    ),
    "EmailError": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Feilmelding på e-postadressen skyldes som regel skrivefeil eller at adressen allerede er i bruk på en annen profil.",
        help_url=f"{_HC}/hjelp-min-side/25-feilmelding-e-postadresse",
    ),
    "PhoneError": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Telefonnummeret må ha 8 siffer uten landkode. Er nummeret registrert på en annen profil, får du feilmelding.",
        help_url=f"{_HC}/hjelp-min-side/26-feilmelding-telefonnummer",
    ),
    "AddContactInfo": dict(
        action_type=ActionType.API_CALL,
        answer_text="Jeg kan legge til et ekstra telefonnummer på profilen din.",
        action="update_profile",
        required_slots=("phone",),
        requires_login=True,
        help_url=f"{_HC}/hjelp-min-side/27-legge-til-flere-telefonnumre-eller-e-postadresser",
    ),
    "WrongInfo": dict(
        action_type=ActionType.FORM_FILL,
        answer_text="Feil i dyrets opplysninger rettes på Min side under Mine dyr. Navn, rase og kjønn kan også rettes av veterinær.",
        help_url=f"{_HC}/hjelp-min-side/28-det-er-registrert-feil-pa-min-side",
    ),
    "MissingPetProfile": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Mangler et dyr på Min side, kan det være registrert på et annet telefonnummer eller på en annen eier.",
        help_url=f"{_HC}/hjelp-min-side/29-det-mangler-et-dyr-pa-min-side",
    ),
    "PetDeceased": dict(
        action_type=ActionType.FORM_FILL,
        answer_text="Vi kondolerer. Du kan registrere at dyret er dødt på Min side under Mine dyr.",
        help_url=f"{_HC}/hjelp-min-side/90-dyret-er-dodt-hva-gjor-jeg",
    ),
    "GDPRDelete": dict(
        action_type=ActionType.FORM_FILL,
        answer_text="Du kan be om sletting av profilen din via skjemaet på Min side. Dyr som fortsatt lever må først overføres til ny eier.",
        help_url=f"{_HC}/hjelp-min-side/36-slett-meg",
    ),
    "GDPRExport": dict(
        action_type=ActionType.FORM_FILL,
        answer_text="Du kan eksportere dine data fra Min side under Innstillinger.",
        help_url=f"{_HC}/hjelp-min-side/74-eksporter-mine-data",
    ),
    "ViewMyPets": dict(
        action_type=ActionType.API_CALL,
        answer_text="Her er dyrene som er registrert på deg.",
        action="view_pets",
        requires_login=True,
    ),
    "OwnershipTransferApp": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="I appen velger du dyret, trykker Eierskifte og oppgir mobilnummeret til ny eier. Ny eier får en betalingslink på SMS.",
        help_url=f"{_HC}/hjelp-eierskifte/92-eierskifte-app",
    ),
    "OwnershipTransferCost": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Eierskifte betales av ny eier via betalingslinken som sendes på SMS. Gjeldende pris vises i betalingslinken.",
        help_url=f"{_HC}/hjelp-eierskifte/31-hva-koster-eierskifte",
    ),
    "OwnershipTransferWeb": dict(
        action_type=ActionType.API_CALL,
        answer_text="Eierskifte startes av nåværende eier. Ny eier får en betalingslink på SMS.",
        action="initiate_transfer",
        required_slots=("animal_id", "phone"),
        requires_login=True,
        help_url=f"{_HC}/hjelp-eierskifte/32-hvordan-foreta-eierskifte-av-et-kjaeledyr",
    ),
    "OwnershipTransferDead": dict(
        action_type=ActionType.FORM_FILL,
        answer_text="Når eier er død, kan dødsbo eller arving be om eierskifte ved å sende inn skjema med dokumentasjon på dødsfallet.",
        help_url=f"{_HC}/hjelp-eierskifte/97-eierskifte-nar-eier-er-dod",
    ),
    "NKKOwnership": dict(
        action_type=ActionType.NAVIGATION,
        answer_text="For NKK-registrerte hunder må eierskifte også registreres hos Norsk Kennel Klub.",
        help_url=f"{_HC}/hjelp-eierskifte/41-eierskifte-av-nkk-registrert-hund",
    ),
    "SmartTagActivation": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Smart Tag aktiveres i DyreID-appen: velg dyret, trykk Legg til Smart Tag og følg stegene med Bluetooth slått på.",
        help_url=f"{_HC}/smarttag/help",
    ),
    "SmartTagQRActivation": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="QR-koden på Smart Tag aktiveres ved å skanne den med mobilen og logge inn på Min side.",
        help_url=f"{_HC}/smarttag/help",
    ),
    "SmartTagConnection": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Sjekk at Bluetooth er på, at appen er oppdatert og at taggen er nær telefonen. Start taggen på nytt hvis den fortsatt ikke kobler til.",
        help_url=f"{_HC}/smart-tag-help/129-kan-ikke-koble-til-eller-legge-til-taggen-android",
    ),
    "SmartTagMissing": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Logg ut og inn igjen i appen. Vises taggen fortsatt ikke, fjern den og legg den til på nytt.",
        help_url=f"{_HC}/smart-tag-help/125-taggen-var-lagt-til-for-men-jeg-finner-den-ikke-android",
    ),
    "SmartTagPosition": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Posisjonen oppdateres når en telefon med appen er i nærheten av taggen. Sjekk at appen har tilgang til posisjon.",
        help_url=f"{_HC}/smart-tag-help/128-posisjonen-har-ikke-oppdatert-seg-pa-lenge-android",
    ),
    "SmartTagSound": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Taggen piper hvis den er frakoblet eierens telefon over tid. Koble den til appen igjen for å stoppe lyden.",
        help_url=f"{_HC}/smart-tag-help/127-taggen-lager-lyder-av-seg-selv-android",
    ),
    "SmartTagMultiple": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Legg til én tag om gangen, og hold de andre taggene unna telefonen mens du kobler til.",
        help_url=f"{_HC}/smart-tag-help/126-jeg-har-flere-tagger-men-far-bare-koblet-til-den-ene-android",
    ),
    "QRCompatibility": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="QR-brikken passer for både hunder og katter og festes i halsbåndet.",
        help_url=f"{_HC}/qr-brikke/109-passer-dyreids-qr-brikke-for-bade-hunder-og-katter",
    ),
    "QRRequiresIDMark": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Ja, kjæledyret må være ID-merket og registrert i DyreID for å bruke QR-brikken.",
        help_url=f"{_HC}/qr-brikke/108-ma-kjaeledyret-mitt-vaere-id-merket-for-a-bruke-tag-en",
    ),
    "QRPricingModel": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="QR-brikken kjøpes én gang, og funksjonene er aktive så lenge du har et gyldig abonnement.",
        help_url=f"{_HC}/qr-brikke/107-er-det-et-abonnement-jeg-ma-kjope-eller-er-det-kun-en-engangskostnad",
    ),
    "QRTagActivation": dict(
        action_type=ActionType.API_CALL,
        answer_text="Jeg kan aktivere QR-brikken for deg.",
        action="activate_qr",
        required_slots=("tag_id",),
        requires_login=True,
        help_url=f"{_HC}/qr-brikke/106-hvordan-aktivere-qr-brikken",
    ),
    "QRTagContactInfo": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Den som skanner brikken ser bare informasjonen du selv har valgt å vise. Du styrer dette på Min side.",
        help_url=f"{_HC}/qr-brikke/105-er-kontaktinformasjonen-min-tilgjengelig-for-alle-som-skanner-tag-en",
    ),
    "QRScanResult": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Når QR-koden skannes, åpnes dyrets profil, og du får varsel om at brikken er skannet.",
        help_url=f"{_HC}/qr-brikke/104-hva-skjer-nar-qr-koden-skannes",
    ),
    "QRUpdateContact": dict(
        action_type=ActionType.NAVIGATION,
        answer_text="Kontaktinformasjonen på QR-brikken hentes fra Min side. Oppdater den der, så vises endringen med en gang.",
        help_url=f"{_HC}/qr-brikke/103-jeg-har-endret-min-kontaktinformasjon-hvordan-oppdaterer-jeg-det",
    ),
    "QRBenefits": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Med QR-brikken kan alle som finner dyret skanne koden med mobilen og kontakte deg, uten chipleser.",
        help_url=f"{_HC}/qr-brikke/102-mitt-dyr-er-id-merket-hva-er-fordelen-med-dyreids-qr-brikke",
    ),
    "QRTagLost": dict(
        action_type=ActionType.API_CALL,
        answer_text="Jeg sender deg en betalingslink for ny QR-brikke.",
        action="send_payment_link",
        action_params=(("payment_type", "qr_tag"),),
        requires_login=True,
        payment_required=True,
        payment_amount=249,
        help_url=f"{_HC}/qr-brikke/100-jeg-har-mistet-tag-en-hva-gjor-jeg",
    ),
    "TagSubscriptionExpiry": dict(
        action_type=ActionType.API_CALL,
        answer_text="Jeg kan fornye abonnementet på taggen din.",
        action="renew_subscription",
        required_slots=("tag_id",),
        requires_login=True,
        payment_required=True,
        payment_amount=99,
        help_url=f"{_HC}/qr-brikke/99-hva-skjer-hvis-abonnementet-mitt-utloper",
    ),
    "ForeignRegistration": dict(
        action_type=ActionType.FORM_FILL,
        answer_text="Dyr fra utlandet registreres i Norge ved at veterinær leser av chipen og sender inn registreringen.",
        help_url=f"{_HC}/hjelp-utenlandsregistrering/33-hvordan-fa-dyret-registrert-i-norge",
    ),
    "ForeignRegistrationCost": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text=f"Registrering av et dyr med utenlandsk chip koster {Config.REGISTRATION_FEE_NOK} kr.",
        help_url=f"{_HC}/hjelp-utenlandsregistrering/34-hva-koster-det-a-registrere-et-dyr-i-norge",
    ),
    "ForeignPedigree": dict(
        action_type=ActionType.NAVIGATION,
        answer_text="Utenlandske hunder med stamtavle registreres først i DyreID og deretter hos Norsk Kennel Klub.",
        help_url=f"{_HC}/hjelp-utenlandsregistrering/40-utenlandsk-hund-med-stamtavle",
    ),
    "ReportLostPet": dict(
        action_type=ActionType.API_CALL,
        answer_text="Jeg melder dyret savnet og aktiverer SMS- og push-varsler.",
        action="mark_lost",
        required_slots=("animal_id",),
        requires_login=True,
        help_url=f"{_HC}/help-savnet-og-funnet/93-hvordan-melde-mitt-kjaeledyr-savnet",
    ),
    "ReportFoundPet": dict(
        action_type=ActionType.API_CALL,
        answer_text="Jeg markerer dyret som funnet.",
        action="mark_found",
        required_slots=("animal_id",),
        requires_login=True,
        help_url=f"{_HC}/help-savnet-og-funnet/96-kjaeledyret-mitt-har-kommet-til-rette-hva-gjor-jeg",
    ),
    "LostFoundInfo": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Savnet & Funnet varsler andre DyreID-brukere i nærheten når du melder dyret ditt savnet. "
                    "Den som finner dyret kan kontakte deg via appen.",
        help_url=f"{_HC}/help-savnet-og-funnet/58-hvordan-fungerer-savnet-og-funnet-fra-dyreid",
    ),
    "SearchableInfo": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Søkbar på 1-2-3 gjør at den som finner dyret ditt kan se at det er registrert og kontakte deg.",
        help_url=f"{_HC}/help-savnet-og-funnet/59-hvordan-fungerer-sokbar-pa-1-2-3",
    ),
    "SearchableMisuse": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Søkbar på 1-2-3 viser ikke adressen din, og all kontakt går via DyreID.",
        help_url=f"{_HC}/help-savnet-og-funnet/61-sokbar-pa-1-2-3-kan-den-misbrukes",
    ),
    "FamilySharingBenefits": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Med familiedeling får flere i husstanden tilgang til dyret i appen og kan melde det savnet.",
        help_url=f"{_HC}/familiedeling/110-hvorfor-burde-jeg-ha-familiedeling",
    ),
    "FamilySharingNonFamily": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Du kan dele tilgang med hvem du vil, for eksempel en hundelufter, så lenge de har DyreID-appen.",
        help_url=f"{_HC}/familiedeling/111-kan-jeg-dele-tilgang-med-andre-enn-familien",
    ),
    "FamilySharingRequirement": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Familiedeling krever DyreID+ hos den som deler dyret.",
        help_url=f"{_HC}/familiedeling/112-trenger-jeg-dyreid-for-a-bruke-familiedeling",
    ),
    "FamilySharingRequest": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Den du har invitert må akseptere forespørselen i appen. Be dem sjekke varsler, eller send forespørselen på nytt.",
        help_url=f"{_HC}/familiedeling/113-jeg-har-sendt-en-foresporsel-til-et-familiemedlem-men-den-har-ikke-blitt-akseptert-hva-gjor-jeg",
    ),
    "FamilySharing": dict(
        action_type=ActionType.NAVIGATION,
        answer_text="Velg dyret i appen, trykk Familiedeling og legg inn mobilnummeret til den du vil dele med.",
        help_url=f"{_HC}/familiedeling/114-hvordan-deler-jeg-tilgang-til-mine-kjaeledyr-med-andre-familiemedlemmer",
    ),
    "FamilySharingPermissions": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="De du deler med kan se dyret og melde det savnet, men kan ikke gjøre eierskifte.",
        help_url=f"{_HC}/familiedeling/115-kan-de-jeg-deler-kjaeledyret-mitt-med-gjore-endringer",
    ),
    "FamilyAccessLost": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Ser du ikke lenger et delt dyr, kan eieren ha avsluttet delingen eller abonnementet DyreID+.",
        help_url=f"{_HC}/familiedeling/116-jeg-ser-ikke-lenger-kjaeledyret-som-har-blitt-delt-med-meg",
    ),
    "FamilySharingExisting": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Ja, du kan dele med noen som allerede har egne dyr. De ser da både sine egne og de delte dyrene i appen.",
        help_url=f"{_HC}/familiedeling/117-kan-jeg-bruke-familiedeling-med-noen-som-allerede-har-et-kjaeledyr",
    ),
    "GeneralInquiry": dict(
        action_type=ActionType.INFO_ONLY,
        answer_text="Jeg kan hjelpe deg med ID-søk, Min side, eierskifte, savnet og funnet, QR-brikke, Smart Tag, familiedeling og appen.",
    ),
}


# ==============================================================================
# LOOKUP HELPERS
# ==============================================================================

def load_canonical_intents() -> List[CanonicalIntent]:
    """Bygger katalogen. info_text hentes fra playbook-svaret når det finnes."""
    intents = []
    for intent_id, category, subcategory, description, keywords in _INTENT_ROWS:
        info = _PLAYBOOK.get(intent_id, {}).get("answer_text")
        intents.append(CanonicalIntent(
            intent_id=intent_id,
            category=category,
            subcategory=subcategory,
            description=description,
            keywords=list(keywords),
            info_text=info,
        ))
    return intents


CANONICAL_INTENTS: List[CanonicalIntent] = load_canonical_intents()
INTENT_BY_ID: Dict[str, CanonicalIntent] = {i.intent_id: i for i in CANONICAL_INTENTS}
ALLOWED_INTENTS: List[str] = [i.intent_id for i in CANONICAL_INTENTS]


def get_intent(intent_id: Optional[str]) -> Optional[CanonicalIntent]:
    if not intent_id:
        return None
    return INTENT_BY_ID.get(intent_id)


def intents_for_category(category: str) -> List[CanonicalIntent]:
    return [i for i in CANONICAL_INTENTS if i.category == category]


def build_default_playbook() -> List[PlaybookEntry]:
    """
    Én PlaybookEntry per kanonisk intent.

    Intents uten eget svar får en NAVIGATION-oppføring som peker til hjelpesenteret.
    """
    entries = []
    for intent in CANONICAL_INTENTS:
        spec = _PLAYBOOK.get(intent.intent_id)
        if spec is None:
            spec = dict(
                action_type=ActionType.NAVIGATION,
                answer_text=f"Du finner svar på «{intent.subcategory}» i hjelpesenteret.",
                help_url=Config.HELP_CENTER_URL,
            )
        entries.append(PlaybookEntry(
            intent=intent.intent_id,
            category=intent.category,
            subcategory=intent.subcategory,
            keywords=", ".join(intent.keywords),
            **spec,
        ))
    return entries
