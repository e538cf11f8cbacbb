"""
Voice Catalog.

Maps the voice ids clients send (``voiceId``) to the parameters a
synthesis backend needs. The built-in catalog covers the studio's six
Portuguese narration voices; deployments can add voices or change the
backend speaker index under ``voices:`` in settings.yaml:

    voices:
      masc-deep:
        speaker_id: 3
      fem-news:
        label: Jornal
        gender: feminine
        tone: clara e objetiva
        speaker_id: 7

Voice ids are prefixed by gender (``masc-``/``fem-``) so clients can group
them without reading the catalog.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional


@dataclass(frozen=True)
class VoiceParams:
    """
    Parameters for one catalog voice.

    Attributes:
        voice_id: Public id, e.g. "fem-soft".
        label: Display name.
        description: One-line description for voice pickers.
        gender: "masculine" or "feminine".
        tone: Tonal profile ("grave", "suave", ...).
        speaker_id: Speaker index inside a multi-speaker backend model.
        language: BCP 47 language tag of the voice.
    """
    voice_id: str
    label: str
    description: str
    gender: str
    tone: str
    speaker_id: int = 0
    language: str = "pt-BR"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.voice_id,
            "label": self.label,
            "description": self.description,
            "gender": self.gender,
            "tone": self.tone,
            "language": self.language,
        }


BUILTIN_VOICES: tuple[VoiceParams, ...] = (
    VoiceParams("masc-deep", "Grave", "Voz masculina grave para trailers e narração épica",
                "masculine", "grave", speaker_id=0),
    VoiceParams("masc-narrator", "Narrador", "Voz masculina firme para documentários",
                "masculine", "firme", speaker_id=1),
    VoiceParams("masc-warm", "Caloroso", "Voz masculina calorosa para histórias",
                "masculine", "calorosa", speaker_id=2),
    VoiceParams("fem-soft", "Suave", "Voz feminina suave para meditação e ASMR",
                "feminine", "suave", speaker_id=3),
    VoiceParams("fem-bright", "Vibrante", "Voz feminina vibrante para anúncios",
                "feminine", "vibrante", speaker_id=4),
    VoiceParams("fem-warm", "Acolhedora", "Voz feminina acolhedora para audiolivros",
                "feminine", "acolhedora", speaker_id=5),
)

_GENDERS = ("masculine", "feminine")


class VoiceCatalog:
    """
    Immutable lookup from voice id to VoiceParams.

    Example:
        >>> catalog = VoiceCatalog()
        >>> catalog.resolve("fem-soft").gender
        'feminine'
        >>> catalog.resolve("robot") is None
        True
    """

    def __init__(self, voices: Optional[Iterable[VoiceParams]] = None):
        entries = BUILTIN_VOICES if voices is None else tuple(voices)
        self._voices: Dict[str, VoiceParams] = {v.voice_id: v for v in entries}

    @classmethod
    def from_settings(cls, raw_voices: Optional[Mapping[str, Any]]) -> "VoiceCatalog":
        """
        Build the catalog from the built-ins plus the ``voices:`` section.

        Known ids are updated field by field; unknown ids are added and
        must carry at least label, gender and tone.

        Raises:
            ValueError: If an added voice is incomplete or has an unknown gender.
        """
        voices: Dict[str, VoiceParams] = {v.voice_id: v for v in BUILTIN_VOICES}
        for voice_id, cfg in (raw_voices or {}).items():
            cfg = dict(cfg or {})
            if "speaker_id" in cfg:
                cfg["speaker_id"] = int(cfg["speaker_id"])
            known = {k: cfg[k] for k in ("label", "description", "gender", "tone", "speaker_id", "language") if k in cfg}

            if voice_id in voices:
                voices[voice_id] = replace(voices[voice_id], **known)
            else:
                missing = [k for k in ("label", "gender", "tone") if k not in known]
                if missing:
                    raise ValueError(f"voice {voice_id!r} is missing {', '.join(missing)}")
                known.setdefault("description", "")
                voices[voice_id] = VoiceParams(voice_id=voice_id, **known)

            if voices[voice_id].gender not in _GENDERS:
                raise ValueError(f"voice {voice_id!r} has unknown gender {voices[voice_id].gender!r}")

        return cls(voices.values())

    def resolve(self, voice_id: Optional[str]) -> Optional[VoiceParams]:
        """Return the voice for voice_id, or None when it is not in the catalog."""
        if not voice_id:
            return None
        return self._voices.get(voice_id)

    def ids(self) -> List[str]:
        return list(self._voices)

    def voices(self) -> List[VoiceParams]:
        return list(self._voices.values())

    def __contains__(self, voice_id: object) -> bool:
        return voice_id in self._voices

    def __len__(self) -> int:
        return len(self._voices)
