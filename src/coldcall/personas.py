"""Local persona and phone-line configuration.

Persona keys (e.g. "joey-optimized") and line keys (e.g. "joeyOptimized")
are the logical names used by the CLI and dashboard; this table resolves
them to platform identifiers.
"""

import copy
from typing import Optional

DEFAULT_PERSONA = "joey-optimized"
DEFAULT_LINE = "joeyOptimized"

DEFAULT_TRANSCRIBER = {
    "provider": "deepgram",
    "model": "flux-general-en",
    "language": "en",
    "smartFormat": True,
    "numerals": True,
    "confidenceThreshold": 0.6,
    "endpointing": 300,
    "mipOptOut": True,
    "keywords": [
        "quota:2", "pipeline:2", "meeting:3", "discovery:2", "ROI:3",
        "objection:2", "demo:2", "budget:3", "timeline:2", "SDR:2",
        "AE:2", "VP:2", "revenue:2", "growth:2", "Joey:2", "Gilkey:2",
    ],
    "keyterm": ["One Meeting", "weekly contest", "top 10%", "8.5 out of 10"],
}

DEFAULT_VOICE = {
    "provider": "11labs",
    "voiceId": "qQBb9ThTUPQJGQcOcY6U",
    "model": "eleven_turbo_v2_5",
    "stability": 0.78,
    "similarityBoost": 0.88,
    "style": 0.25,
    "useSpeakerBoost": True,
    "speed": 1.0,
    "optimizeStreamingLatency": 3,
    "enableSsmlParsing": False,
    "cachingEnabled": True,
    "chunkPlan": {
        "enabled": True,
        "minCharacters": 35,
        "punctuationBoundaries": [".", ",", "!", "?"],
        "formatPlan": {"enabled": True, "numberToDigitsCutoff": 2025},
    },
}

DEFAULT_START_SPEAKING_PLAN = {
    "waitSeconds": 0.2,
    "smartEndpointingPlan": {"provider": "livekit"},
    "customEndpointingRules": [
        {
            "type": "customer",
            "regex": "(?i)(are you interested|do you have|can you|would you|is that|does that)",
            "timeoutSeconds": 0.8,
        },
        {
            "type": "customer",
            "regex": "(?i)(what('s| is) your|tell me about|can you explain|walk me through)",
            "timeoutSeconds": 2.5,
        },
    ],
}

DEFAULT_STOP_SPEAKING_PLAN = {
    "numWords": 3,
    "voiceSeconds": 0.3,
    "backoffSeconds": 0.7,
    "acknowledgementPhrases": ["okay", "yeah", "right", "uh huh", "mm hmm", "got it", "sure"],
    "interruptionPhrases": ["stop", "wait", "hold on", "actually", "hang on", "but"],
}

CATEGORIES = (
    "opening_preparation",
    "objection_handling",
    "peer_discourse",
    "business_value",
    "professionalism",
)

MEETING_THRESHOLD = 8.5

_TRANSCRIPT_PROMPT = "Transcript:\n\n{{transcript}}\n\nCall ended reason: {{endedReason}}"

DEFAULT_ANALYSIS_PLAN = {
    "minMessagesThreshold": 3,
    "summaryPlan": {
        "enabled": True,
        "timeoutSeconds": 45,
        "messages": [
            {
                "role": "system",
                "content": (
                    "You are an expert SDR coach analyzing a cold call training session. "
                    "Cover opening, preparation, objection handling, peer discourse, "
                    "business value and executive presence. Cite the caller's own words."
                ),
            },
            {"role": "user", "content": _TRANSCRIPT_PROMPT},
        ],
    },
    "structuredDataPlan": {
        "enabled": True,
        "timeoutSeconds": 45,
        "messages": [
            {
                "role": "system",
                "content": (
                    "Score this SDR call with decimal scores (e.g. 7.3/10). "
                    f"Only {MEETING_THRESHOLD}+ earns a meeting. Weights: opening 15%, "
                    "objections 25%, peer discourse 20%, business value 25%, professionalism 15%."
                ),
            },
            {"role": "user", "content": _TRANSCRIPT_PROMPT},
        ],
        "schema": {
            "type": "object",
            "title": "SDR Call Evaluation",
            "required": [
                "overall_score",
                "category_scores",
                "success_criteria_met",
                "meeting_qualified",
                "weekly_contest_eligible",
            ],
            "properties": {
                "overall_score": {"type": "number", "minimum": 0, "maximum": 10},
                "overall_comment": {"type": "string"},
                "category_scores": {
                    "type": "object",
                    "required": list(CATEGORIES),
                    "properties": {
                        name: {"type": "number", "minimum": 0, "maximum": 10}
                        for name in CATEGORIES
                    },
                },
                "success_criteria_met": {"type": "object"},
                "meeting_qualified": {"type": "boolean"},
                "weekly_contest_eligible": {"type": "boolean"},
                "pushback_quality": {
                    "type": "string",
                    "enum": ["none", "defensive", "professional", "peer_level", "excellent"],
                },
                "objections_deployed": {"type": "array", "items": {"type": "string"}},
                "quoted_examples": {"type": "array", "items": {"type": "object"}},
                "coaching_provided": {"type": "string"},
            },
        },
    },
    "successEvaluationPlan": {
        "enabled": True,
        "rubric": "NumericScale",
        "timeoutSeconds": 30,
        "messages": [
            {
                "role": "system",
                "content": (
                    "Evaluate this SDR's performance on a 1-10 scale. "
                    f"{MEETING_THRESHOLD}+ indicates top 10% performance worthy of a meeting."
                ),
            },
            {"role": "user", "content": _TRANSCRIPT_PROMPT},
        ],
    },
}

_BASE_PROMPT = """You are Joey Gilkey, VP of Growth at a B2B SaaS company doing about $50M ARR.
You picked up a cold call. Keep answers to 1-3 sentences, sound like a real person,
push back 2-3 times, and reward preparation and business value over feature lists.
At the end, always offer to score the call out of 10."""


def _assistant(assistant_id: str, name: str, first_message: str, persona_notes: str) -> dict:
    return {
        "id": assistant_id,
        "name": name,
        "transcriber": copy.deepcopy(DEFAULT_TRANSCRIBER),
        "model": {
            "provider": "openai",
            "model": "gpt-4.1",
            "temperature": 0.7,
            "maxTokens": 250,
            "messages": [{"role": "system", "content": f"{_BASE_PROMPT}\n\n{persona_notes}"}],
        },
        "voice": copy.deepcopy(DEFAULT_VOICE),
        "firstMessage": first_message,
        "firstMessageMode": "assistant-speaks-first",
        "silenceTimeoutSeconds": 30,
        "maxDurationSeconds": 600,
        "backgroundSound": "office",
        "endCallMessage": "Alright, I've gotta jump. Good luck out there.",
        "startSpeakingPlan": copy.deepcopy(DEFAULT_START_SPEAKING_PLAN),
        "stopSpeakingPlan": copy.deepcopy(DEFAULT_STOP_SPEAKING_PLAN),
        "analysisPlan": copy.deepcopy(DEFAULT_ANALYSIS_PLAN),
        "artifactPlan": {"recordingEnabled": True, "videoRecordingEnabled": False},
    }


ASSISTANT_IDS = {
    "joey-optimized": "46dec9e9-a844-4f66-b08a-ddc44735d403",
    "joey-vp-growth": "bb3b91d8-1685-4903-a124-305420959429",
    "joey-elite": "c068d8e8-ee09-4055-95a0-5ecf0da4c6df",
}

ASSISTANTS = {
    "joey-optimized": _assistant(
        ASSISTANT_IDS["joey-optimized"],
        "Joey - Optimized",
        "This is Joey. What's going on?",
        "Difficulty: medium. Busy but fair; acknowledge good work out loud.",
    ),
    "joey-vp-growth": _assistant(
        ASSISTANT_IDS["joey-vp-growth"],
        "Joey - VP Growth",
        "Joey. Go.",
        "Difficulty: medium-hard. Lead with pipeline and quota questions.",
    ),
    "joey-elite": _assistant(
        ASSISTANT_IDS["joey-elite"],
        "Joey - Elite",
        "Yeah, this is Joey. You've got thirty seconds.",
        "Difficulty: hard. Interrupt rambling, demand specifics, rarely concede.",
    ),
}

DIFFICULTY_LEVELS = {
    "joey-optimized": "medium",
    "joey-vp-growth": "medium",
    "joey-elite": "hard",
}

PHONE_NUMBERS = {
    "siptip": {
        "id": "8e3e9f68-2ef3-433f-8f50-1efb37e89919",
        "number": "+19122962442",
        "name": "siptip",
        "default_assistant": "joey-vp-growth",
    },
    "joeyOptimized": {
        "id": "7f635232-905d-4185-a9d2-4d905b323779",
        "number": "+16592167227",
        "name": "Joey (Optimized)",
        "default_assistant": "joey-optimized",
    },
    "joeyVpGrowth": {
        "id": "aa27f637-0d91-4968-a656-80f09fc1863a",
        "number": "+16173708226",
        "name": "Joey - VP Growth",
        "default_assistant": "joey-vp-growth",
    },
}

# Fields the assistant update endpoint accepts.
SYNC_FIELDS = (
    "name",
    "transcriber",
    "model",
    "voice",
    "firstMessage",
    "firstMessageMode",
    "firstMessageInterruptionsEnabled",
    "silenceTimeoutSeconds",
    "maxDurationSeconds",
    "backgroundSound",
    "voicemailMessage",
    "endCallMessage",
    "startSpeakingPlan",
    "stopSpeakingPlan",
    "analysisPlan",
    "artifactPlan",
    "messagePlan",
)


def get_assistant(key_or_id: str) -> Optional[dict]:
    """Look up a persona config by key first, then by platform id."""
    if key_or_id in ASSISTANTS:
        return ASSISTANTS[key_or_id]
    for config in ASSISTANTS.values():
        if config.get("id") == key_or_id:
            return config
    return None


def persona_key_for(assistant_id: str) -> Optional[str]:
    for key, known_id in ASSISTANT_IDS.items():
        if known_id == assistant_id:
            return key
    return None


def line_key_for(phone_number_id: str) -> Optional[str]:
    for key, line in PHONE_NUMBERS.items():
        if line["id"] == phone_number_id:
            return key
    return None


def assistant_name_for(assistant_id: Optional[str]) -> Optional[str]:
    """Display name for a platform assistant id, or None if it isn't one of ours."""
    if not assistant_id:
        return None
    config = get_assistant(assistant_id)
    return config["name"] if config else None


def build_sync_payload(config: dict) -> dict:
    """Strip a local persona config down to the fields the platform accepts on update."""
    return {
        name: copy.deepcopy(config[name])
        for name in SYNC_FIELDS
        if config.get(name) is not None
    }
