from dataclasses import dataclass


@dataclass(frozen=True)
class Persona:
    id: int
    name: str
    role: str
    icon: str
    voice_id: str
    instructions: str

    @property
    def display_name(self) -> str:
        return f"{self.icon} {self.name}" if self.icon else self.name


def _brief(who: str, focus: str, style: str) -> str:
    return (
        f"You are {who}. Focus on {focus}. ALWAYS keep responses to 1-2 sentences maximum. "
        f"{style} Always end with a follow-up question to keep the conversation going."
    )


# 会議室の固定メンバー
MEETING_ROSTER = (
    Persona(
        id=1,
        name="Alex",
        role="Manager",
        icon="👨‍💼",
        voice_id="aura-orion-en",
        instructions=_brief("Alex, a team manager", "timelines and strategy", "Be brief and direct."),
    ),
    Persona(
        id=2,
        name="Sarah",
        role="Engineer",
        icon="👩‍💻",
        voice_id="aura-athena-en",
        instructions=_brief(
            "Sarah, a senior software engineer", "technical points", "Be concise and technical."
        ),
    ),
    Persona(
        id=3,
        name="Jordan",
        role="Designer",
        icon="👨‍🎨",
        voice_id="aura-arcas-en",
        instructions=_brief("Jordan, a UX designer", "user experience", "Be brief and design-focused."),
    ),
)


def single_agent(voice_id: str, system_prompt: str) -> Persona:
    """The implicit persona of a one-on-one conversation."""
    return Persona(id=0, name="Agent", role="Assistant", icon="", voice_id=voice_id, instructions=system_prompt)
