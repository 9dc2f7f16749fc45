"""
Тесты шаблонов уведомлений
"""

import pytest

from order_lifecycle.services.notifications.templates import (
    CRITICAL_TEMPLATES,
    PLACEHOLDER_PATTERN,
    TEMPLATES,
    get_template,
    list_templates,
    render_template,
    render_text,
)


class TestRenderText:
    """Тесты подстановки переменных"""

    def test_substitution(self):
        assert render_text("Order #{{orderNumber}}", {"orderNumber": "AB12CD34"}) == (
            "Order #AB12CD34"
        )

    def test_repeated_placeholder(self):
        assert render_text("{{a}}-{{a}}", {"a": 1}) == "1-1"

    def test_unknown_placeholder_kept(self):
        """Неизвестный плейсхолдер остаётся как есть"""
        assert render_text("Hi {{name}}", {}) == "Hi {{name}}"

    def test_empty_value_kept(self):
        assert render_text("Hi {{name}}", {"name": ""}) == "Hi {{name}}"
        assert render_text("Hi {{name}}", {"name": None}) == "Hi {{name}}"

    def test_zero_is_rendered(self):
        assert render_text("Stock: {{currentStock}}", {"currentStock": 0}) == "Stock: 0"


class TestTemplates:
    """Тесты набора шаблонов"""

    @pytest.mark.parametrize("template_id", list(TEMPLATES))
    def test_declared_variables_match_placeholders(self, template_id):
        """Объявленные переменные совпадают с плейсхолдерами текста"""
        template = TEMPLATES[template_id]
        used = set(PLACEHOLDER_PATTERN.findall(template.subject + template.text_content))
        assert used <= set(template.variables) | {"trackingUrl"}

    def test_get_template(self):
        assert get_template("ORDER_SHIPPED").name == "Order Shipped"
        assert get_template("NOPE") is None

    def test_list_templates(self):
        ids = [template.id for template in list_templates()]
        assert "ORDER_CANCELLED" in ids
        assert len(ids) == len(TEMPLATES)

    def test_critical_templates_exist(self):
        assert CRITICAL_TEMPLATES <= set(TEMPLATES)

    def test_low_stock_has_no_sms(self):
        assert get_template("LOW_STOCK_ALERT").sms_content is None

    def test_render_shipped(self):
        """Тест рендера письма об отгрузке"""
        rendered = render_template(
            get_template("ORDER_SHIPPED"),
            {
                "orderNumber": "AB12CD34",
                "trackingNumber": "ROY0000000001GB",
                "carrier": "Royal Mail",
                "deliveryDate": "Wednesday, 21 October 2026",
                "carrierTrackingUrl": "https://example.com/track",
            },
        )
        assert rendered.subject == "Your order #AB12CD34 has shipped!"
        assert "Tracking Number: ROY0000000001GB" in rendered.text_content
        assert "<code>ROY0000000001GB</code>" in rendered.html_content
        assert "via Royal Mail" in rendered.sms_content
        assert "{{" not in rendered.text_content
