# ai_flows.py
"""
Prompt flows backed by Gemini:

- find_skill_matches: the model fetches every user through the getAllUsers
  tool and picks the best swap partners; avatars are generated per match.
- generate_user_bio: a short profile bio from name, skills and old bio.
- generate_portfolio_image: an illustration for a portfolio project.

Every JSON answer is validated against the pydantic models in schemas.py.
"""
import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor

from pydantic import ValidationError as PydanticValidationError

import config
from errors import GenerationError
from gemini_client import GeminiClient, function_calls, inline_image_url, response_text
from schemas import (
    FindSkillMatchesInput,
    FindSkillMatchesOutput,
    GeneratePortfolioImageInput,
    GeneratePortfolioImageOutput,
    GenerateUserBioInput,
    GenerateUserBioOutput,
)

logger = logging.getLogger(__name__)

GET_ALL_USERS_TOOL = {
    "name": "getAllUsers",
    "description": "Get a list of all available users in the system to find matches.",
}

MATCH_SYSTEM_PROMPT = """You are a skill-matching expert for a skill-swapping platform.
Your goal is to find the best potential matches for the current user based on the skills they offer and the skills they desire.
A good match is someone who desires skills the user offers, AND offers skills the user desires.
You will be provided with a list of all users via a tool. You must call this tool to get the data.
From the list of all users, filter out the current user.
Then, identify up to {limit} of the best matches. A better match is one where there are more overlapping skills between what one user offers and another desires.
For each final match, choose a simple, creative aiHint describing how their avatar should look.
Do NOT use the same aiHint for multiple users. Example aiHints: "man smiling", "woman with glasses", "person with curly hair", "artist with beret".
Return a list of these matched users, using each user's uid exactly as given by the tool."""

MATCH_PROMPT = """Find skill matches for a user named {name}.
This user offers: {offered}
This user wants: {desired}"""

MATCH_FOLLOWUP_PROMPT = (
    "Here is the list of all users. Now, fulfill the original request to find "
    "the best matches for {name} and give each of them an aiHint."
)

_STRING_LIST = {"type": "ARRAY", "items": {"type": "STRING"}}

MATCHES_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "matches": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "uid": {"type": "STRING"},
                    "name": {"type": "STRING"},
                    "bio": {"type": "STRING"},
                    "skillsOffered": _STRING_LIST,
                    "skillsDesired": _STRING_LIST,
                    "aiHint": {"type": "STRING"},
                },
                "required": ["uid", "name", "skillsOffered", "skillsDesired", "aiHint"],
            },
        },
    },
    "required": ["matches"],
}

BIO_PROMPT = """You are a friendly and helpful AI assistant specializing in writing compelling short bios for user profiles.

Given the following information about a user, write a short bio that is engaging and highlights their skills and interests. The bio should be no more than 100 words.

Name: {name}
{existing}Skills Offered: {offered}
Skills Desired: {desired}
"""

BIO_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {"bio": {"type": "STRING"}},
    "required": ["bio"],
}

AVATAR_PROMPT = "A profile picture of a person named {name}. {hint}."

PORTFOLIO_IMAGE_PROMPT = (
    'An image representing a project titled "{title}". '
    "The project is about: {description}. Style hint: {hint}."
)

IMAGE_CONFIG = {"responseModalities": ["TEXT", "IMAGE"]}

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _client(client):
    return client or GeminiClient()


def _user_turn(*parts) -> list:
    return [{"role": "user", "parts": [{"text": p} for p in parts]}]


def parse_json(text: str):
    """Decodes a model answer, tolerating a ```json fence around it."""
    clean = _FENCE.sub("", (text or "").strip())
    try:
        return json.loads(clean)
    except ValueError as e:
        raise GenerationError("Model answer is not valid JSON") from e


def _tool_view(user: dict) -> dict:
    # pictures are data URLs; the model only needs the skill data
    return {
        "uid": user["uid"],
        "name": user.get("name", ""),
        "bio": user.get("shortBio", ""),
        "skillsOffered": user.get("skillsOffered", []),
        "skillsDesired": user.get("skillsDesired", []),
    }


# ---------------- skill matches ----------------
def find_skill_matches(data, list_users, client: GeminiClient = None,
                       limit: int = None, with_avatars: bool = None) -> FindSkillMatchesOutput:
    """
    data: FindSkillMatchesInput (or a dict of it)
    list_users: callable returning every profile dict; runs when the model
    calls the getAllUsers tool.
    """
    inp = FindSkillMatchesInput.model_validate(data)
    client = _client(client)
    limit = config.MATCH_LIMIT if limit is None else limit
    with_avatars = config.GENERATE_AVATARS if with_avatars is None else with_avatars
    system = MATCH_SYSTEM_PROMPT.format(limit=limit)
    prompt = MATCH_PROMPT.format(
        name=inp.currentUserName,
        offered=", ".join(inp.skillsOffered),
        desired=", ".join(inp.skillsDesired),
    )

    first = client.generate(
        config.GEMINI_MODEL,
        _user_turn(prompt),
        system=system,
        tools=[{"functionDeclarations": [GET_ALL_USERS_TOOL]}],
    )

    calls = [c for c in function_calls(first) if c.get("name") == GET_ALL_USERS_TOOL["name"]]
    if not calls:
        # answered without the tool; keep it only if it already has matches
        try:
            output = FindSkillMatchesOutput.model_validate(parse_json(response_text(first)))
        except (GenerationError, PydanticValidationError):
            raise GenerationError("The model did not call the user tool as expected.")
        users = list_users()
    else:
        users = list_users()
        logger.info("getAllUsers tool returned %d users", len(users))
        final = client.generate(
            config.GEMINI_MODEL,
            _user_turn(
                prompt,
                MATCH_FOLLOWUP_PROMPT.format(name=inp.currentUserName),
                json.dumps({"allUsers": [_tool_view(u) for u in users]}),
            ),
            system=system,
            generation_config={
                "responseMimeType": "application/json",
                "responseSchema": MATCHES_RESPONSE_SCHEMA,
            },
        )
        try:
            output = FindSkillMatchesOutput.model_validate(parse_json(response_text(final)))
        except PydanticValidationError as e:
            raise GenerationError("Model returned matches in an unexpected shape") from e

    matches = _resolve_matches(output, users, inp, limit)
    if matches and with_avatars:
        matches = _with_avatars(matches, client)
    return FindSkillMatchesOutput(matches=matches)


def _resolve_matches(output: FindSkillMatchesOutput, users: list,
                     inp: FindSkillMatchesInput, limit: int) -> list:
    """Keeps known users only and takes their profile data from the database."""
    by_uid = {u["uid"]: u for u in users}
    resolved = []
    seen = set()
    for m in output.matches:
        user = by_uid.get(m.uid)
        if user is None:
            logger.warning("Model returned unknown uid %s", m.uid)
            continue
        if m.uid in seen or m.uid == inp.currentUserUid:
            continue
        if inp.currentUserUid is None and user.get("name") == inp.currentUserName:
            continue
        seen.add(m.uid)
        resolved.append(m.model_copy(update={
            "name": user.get("name", m.name),
            "bio": user.get("shortBio", ""),
            "skillsOffered": user.get("skillsOffered", []),
            "skillsDesired": user.get("skillsDesired", []),
            "profilePicture": user.get("profilePicture") or None,
        }))
        if len(resolved) >= limit:
            break
    return resolved


def generate_avatar(name: str, hint: str, client: GeminiClient = None) -> str:
    resp = _client(client).generate(
        config.GEMINI_IMAGE_MODEL,
        _user_turn(AVATAR_PROMPT.format(name=name, hint=hint or "person smiling")),
        generation_config=IMAGE_CONFIG,
    )
    url = inline_image_url(resp)
    if not url:
        raise GenerationError("Avatar generation returned no image")
    return url


def _with_avatars(matches: list, client: GeminiClient) -> list:
    def one(user):
        try:
            return user.model_copy(update={"avatar": generate_avatar(user.name, user.aiHint, client)})
        except Exception:
            logger.exception("Failed to generate avatar for %s", user.name)
            return user.model_copy(update={"avatar": config.AVATAR_FALLBACK_URL})

    with ThreadPoolExecutor(max_workers=min(len(matches), 6)) as pool:
        return list(pool.map(one, matches))


# ---------------- bio ----------------
def generate_user_bio(data, client: GeminiClient = None) -> GenerateUserBioOutput:
    inp = GenerateUserBioInput.model_validate(data)
    existing = f"Existing Bio: {inp.shortBio}\n" if inp.shortBio else ""
    prompt = BIO_PROMPT.format(
        name=inp.name,
        existing=existing,
        offered=", ".join(inp.skillsOffered),
        desired=", ".join(inp.skillsDesired),
    )
    resp = _client(client).generate(
        config.GEMINI_MODEL,
        _user_turn(prompt),
        generation_config={
            "responseMimeType": "application/json",
            "responseSchema": BIO_RESPONSE_SCHEMA,
        },
    )
    try:
        out = GenerateUserBioOutput.model_validate(parse_json(response_text(resp)))
    except PydanticValidationError as e:
        raise GenerationError("Model returned a bio in an unexpected shape") from e
    return out


def handle_generate_bio(data, client: GeminiClient = None) -> dict:
    """Envelope used by the profile form: never raises."""
    try:
        result = generate_user_bio(data, client)
        return {"success": True, "bio": result.bio}
    except Exception:
        logger.exception("Error generating bio")
        return {
            "success": False,
            "error": "An unexpected error occurred while generating the bio. Please try again.",
        }


# ---------------- portfolio image ----------------
def generate_portfolio_image(data, client: GeminiClient = None) -> GeneratePortfolioImageOutput:
    inp = GeneratePortfolioImageInput.model_validate(data)
    resp = _client(client).generate(
        config.GEMINI_IMAGE_MODEL,
        _user_turn(PORTFOLIO_IMAGE_PROMPT.format(
            title=inp.title, description=inp.description, hint=inp.aiHint)),
        generation_config=IMAGE_CONFIG,
    )
    url = inline_image_url(resp)
    if not url:
        raise GenerationError("Image generation failed.")
    return GeneratePortfolioImageOutput(imageUrl=url)
