from helpmate.core.logging import get_logger
from helpmate.services import user_service


def test_package_modules_are_not_prefixed_twice():
    assert get_logger("helpmate.services.chat_service").name == "helpmate.services.chat_service"
    assert user_service.logger.name == "helpmate.services.user_service"


def test_outside_modules_are_nested_under_helpmate():
    assert get_logger("utils.text_utils").name == "helpmate.utils.text_utils"
    assert get_logger("__main__").name == "helpmate.__main__"
