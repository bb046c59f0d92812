import os
import logging
from chainlit.cli import run_chainlit
import chainlit as cl
from dotenv import load_dotenv

from pipeline import create_pipeline, ChatbotPipeline
from schema import AuthContext

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

pipeline: ChatbotPipeline = None

# demo-innlogging mot sandkasseregisteret
DEMO_OWNERS = [
    ("OWN-001", "Demo Bruker"),
    ("OWN-003", "Savnet Eier"),
    ("OWN-005", "App Bruker"),
]


def get_pipeline() -> ChatbotPipeline:
    global pipeline

    if pipeline is None:
        logger.info("Starter pipeline...")
        pipeline = create_pipeline()
        logger.info("Pipeline klar")

    return pipeline


def _login_actions():
    return [
        cl.Action(name="demo_login", payload={"owner_id": owner_id}, label=f"Logg inn som {name}")
        for owner_id, name in DEMO_OWNERS
    ]


@cl.on_chat_start
async def on_chat_start():
    session_id = cl.user_session.get("id")
    cl.user_session.set("session_id", session_id)

    owner_id = os.getenv("DEMO_OWNER_ID")
    cl.user_session.set("auth", AuthContext(authenticated=bool(owner_id), owner_id=owner_id))

    try:
        indexed = await get_pipeline().warm_up()
        logger.info(f"Intent index ready ({indexed} intents)")
    except Exception as e:
        logger.error(f"Intent index warm-up failed: {e}")

    welcome_message = """Hei! Jeg er DyreID sin digitale assistent.

Jeg kan hjelpe deg med:
* Savnet og funnet dyr
* Eierskifte
* ID-søk og chipnummer
* QR-brikke og Smart Tag
* Innlogging og Min side

Skriv gjerne et emne, for eksempel **eierskifte**, for å se en meny. Hva kan jeg hjelpe deg med?"""

    await cl.Message(content=welcome_message, actions=_login_actions()).send()
    logger.info(f"Ny samtale: {session_id}")


@cl.action_callback("demo_login")
async def on_demo_login(action: cl.Action):
    owner_id = action.payload.get("owner_id")
    cl.user_session.set("auth", AuthContext(authenticated=True, owner_id=owner_id))
    logger.info(f"Demo login: {owner_id}")
    await action.remove()
    await cl.Message(content=f"Du er nå logget inn ({owner_id}).").send()


@cl.on_message
async def on_message(message: cl.Message):
    session_id = cl.user_session.get("session_id")
    auth = cl.user_session.get("auth") or AuthContext()

    logger.info(f"Melding fra {session_id}: {message.content[:50]}...")

    reply = cl.Message(content="")
    try:
        bot = get_pipeline()
        async for chunk in bot.stream_chat_response(session_id, message.content, auth):
            await reply.stream_token(chunk)
    except Exception as e:
        logger.error(f"Feil under behandling: {e}", exc_info=True)
        reply.content = "Beklager, noe gikk galt. Prøv igjen om litt."
    await reply.send()


@cl.on_chat_end
async def on_chat_end():
    session_id = cl.user_session.get("session_id")

    if session_id:
        try:
            await get_pipeline().clear_session(session_id)
            logger.info(f"Samtale avsluttet: {session_id}")
        except Exception as e:
            logger.error(f"Kunne ikke slette sesjon: {e}")


if __name__ == "__main__":
    run_chainlit(__file__)
