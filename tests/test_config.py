from foodshare.config import Settings, get_settings


def test_settings_come_from_the_environment():
    settings = get_settings()
    assert settings.database_url.startswith("sqlite:///")
    assert settings.bcrypt_rounds == 4
    assert settings.verification_sweep_enabled is False
    assert settings.registration_otp_expire_minutes == 15
    assert settings.login_otp_expire_minutes == 30


def test_only_used_settings_are_declared():
    assert "app_env" not in Settings.model_fields


def test_mailgun_values_are_stripped():
    settings = Settings(mailgun_api_key="  key-1 ", mailgun_domain=" mg.example.com\n")
    assert settings.mailgun_api_key == "key-1"
    assert settings.mailgun_domain == "mg.example.com"
