from app.config import AdminAllowlist, PlannerSettings, TwilioCredentials, load_settings


def test_allowlist_matches_on_last_ten_digits():
    admins = AdminAllowlist.from_numbers(["+1 (555) 000-0001", "", "5550000002"])
    assert admins.contains("5550000001")
    assert admins.contains("+15550000002")
    assert not admins.contains("5550000003")
    assert not admins.contains("")


def test_allowlist_from_env(monkeypatch):
    monkeypatch.setenv("ADMIN_PHONE_NUMBERS", "+15550000001, 5550000002 ,")
    assert AdminAllowlist.from_env().phones == frozenset({"5550000001", "5550000002"})


def test_twilio_can_send_needs_everything():
    assert not TwilioCredentials(account_sid="AC1", auth_token="t").can_send
    assert TwilioCredentials(account_sid="AC1", auth_token="t", from_number="+1555").can_send


def test_load_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_MODEL", "gpt-test")
    monkeypatch.setenv("DRAFT_STALE_HOURS", "6")
    monkeypatch.setenv("SEARCH_LIMIT", "3")
    monkeypatch.setenv("BOT_NAME", "friday")
    monkeypatch.setenv("SMS_VERIFY_SIGNATURE", "off")
    monkeypatch.setenv("MAINTENANCE_TOKEN", "tok")
    monkeypatch.setenv("TWILIO_AUTH_TOKEN", "secret")
    monkeypatch.delenv("APP_URL", raising=False)

    settings = load_settings()
    assert settings.openai_model == "gpt-test"
    assert settings.draft_stale_hours == 6
    assert settings.search_limit == 3
    assert settings.bot_name == "friday"
    assert settings.verify_signature is False
    assert settings.maintenance_token == "tok"
    assert settings.twilio.auth_token == "secret"
    assert settings.app_url is None


def test_defaults():
    settings = PlannerSettings()
    assert settings.verify_signature is True
    assert settings.message_retention_days == 30
    assert not settings.admins.contains("5550000001")
