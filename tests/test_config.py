import config


def test_load_config_reads_environment(monkeypatch, tmp_path):
    prompt = tmp_path / "prompt.md"
    prompt.write_text("  Talk like a pirate.  \n", encoding="utf-8")
    monkeypatch.setenv("SYSTEM_PROMPT_PATH", str(prompt))
    monkeypatch.setenv("AGENT_VOICE", "aura-luna-en")
    monkeypatch.setenv("ALL_RESPOND", "false")
    monkeypatch.setenv("RELAY_BASE", "http://relay:3000/")
    monkeypatch.setenv("INPUT_DEVICE", "2")
    monkeypatch.setenv("OUTPUT_DEVICE", "USB Audio")

    config.load_config()

    assert config.agent_settings() == config.AgentSettings(voice_id="aura-luna-en", system_prompt="Talk like a pirate.")
    assert config.meeting_settings().all_respond is False
    assert config.RELAY_BASE == "http://relay:3000"
    assert config.INPUT_DEVICE == 2
    assert config.OUTPUT_DEVICE == "USB Audio"


def test_load_config_defaults(monkeypatch, tmp_path):
    for name in ("AGENT_VOICE", "MEETING_VOICE", "ALL_RESPOND", "INPUT_DEVICE", "RELAY_BASE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SYSTEM_PROMPT_PATH", str(tmp_path / "missing.md"))
    monkeypatch.setattr(config, "RELAY_BASE", "http://localhost:3000")

    config.load_config()

    assert config.agent_settings().system_prompt == config.DEFAULT_SYSTEM_PROMPT
    assert config.meeting_settings() == config.MeetingSettings(base_voice_id="aura-asteria-en", all_respond=True)
    assert config.INPUT_DEVICE is None
    assert config.RELAY_BASE == "http://localhost:3000"
