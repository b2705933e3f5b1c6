import click
import pytest

from n8ndeployer.errors import ConfigurationError
from n8ndeployer.services.prompt import PromptService
from n8ndeployer.services.validation import ValidationService


class ScriptedPrompt:
    """Feeds answers to PromptService the way click.prompt would, including retries."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.texts = []
        self.kwargs = []

    def __call__(self, text, value_proc=None, **kwargs):
        self.texts.append(text)
        self.kwargs.append(kwargs)
        while True:
            answer = self.answers.pop(0)
            if answer == "" and "default" in kwargs:
                answer = kwargs["default"]
            try:
                return value_proc(answer)
            except click.BadParameter:
                continue


def test_collect_prompts_for_everything_missing():
    prompt = ScriptedPrompt(
        ["n8n.example.com", "admin@example.com", "admin", "secret", "203.0.113.0/24, 198.51.100.42"]
    )

    config = PromptService(ValidationService(), prompt=prompt).collect()

    assert config.domain == "n8n.example.com"
    assert config.auth_password == "secret"
    assert config.ip_allowlist == ("203.0.113.0/24", "198.51.100.42/32")
    assert prompt.kwargs[3]["hide_input"] is True


def test_collect_reprompts_on_invalid_answer():
    prompt = ScriptedPrompt(["not_a_domain", "n8n.example.com"])

    config = PromptService(ValidationService(), prompt=prompt).collect(
        email="admin@example.com",
        auth_user="admin",
        auth_password="secret",
        ip_allowlist="",
    )

    assert config.domain == "n8n.example.com"
    assert prompt.answers == []


def test_empty_allowlist_answer_disables_filtering():
    prompt = ScriptedPrompt([""])

    config = PromptService(ValidationService(), prompt=prompt).collect(
        domain="n8n.example.com",
        email="admin@example.com",
        auth_user="admin",
        auth_password="secret",
    )

    assert config.ip_allowlist == ()


def test_supplied_values_skip_prompts_and_fail_fast_when_invalid():
    def no_prompt(*_args, **_kwargs):
        raise AssertionError("should not prompt")

    service = PromptService(ValidationService(), prompt=no_prompt)

    with pytest.raises(ConfigurationError, match="Invalid e-mail address"):
        service.collect(
            domain="n8n.example.com",
            email="nope",
            auth_user="admin",
            auth_password="secret",
            ip_allowlist=[],
        )
