"""
MJML Email Templates
Transactional layout shared by affiliate and admin alert emails
"""

from typing import Optional

THEME = {
    "primary": "#b8860b",
    "primary_light": "#fdf6e3",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "danger": "#ef4444",
}

SITE_URL = "https://dubaiestates.io"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 0 40px">
          <mj-column>
            <mj-text font-size="20px" font-weight="700" color="{THEME['primary']}" padding="0 0 24px 0">
              Dubai Estates
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 32px 0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              © Dubai Estates. All rights reserved.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def payout_sent_template(affiliate_name: str, amount: float, commission_count: int, method_label: str) -> str:
    """Affiliate payout confirmation"""
    content = f"""
    <mj-text>
      Hi {affiliate_name},
    </mj-text>

    <mj-text>
      We've sent <strong>${amount:,.2f}</strong> to your {method_label}
      for {commission_count} approved commission{'s' if commission_count != 1 else ''}.
    </mj-text>

    <mj-text color="{THEME['text_muted']}">
      Transfers usually arrive within 2-5 business days depending on your bank.
    </mj-text>
    """

    return get_base_template(
        title="Payout Sent!",
        preview_text=f"${amount:,.2f} is on its way",
        content_sections=content,
        cta_url=f"{SITE_URL}/affiliate/dashboard",
        cta_label="View Affiliate Dashboard",
    )


def sync_failure_alert_template(
    schedule_name: str,
    status: str,
    properties_synced: int,
    areas_failed: int,
    errors: list[str],
) -> str:
    """Admin alert for a scheduled sync that failed or partially failed"""
    error_items = "<br/>".join(f"• {e}" for e in errors[:10]) or "No error details recorded"
    content = f"""
    <mj-text>
      The scheduled sync <strong>{schedule_name}</strong> finished with status
      <strong style="color: {THEME['danger']};">{status}</strong>.
    </mj-text>

    <mj-text>
      Properties synced: {properties_synced}<br/>
      Area chunks failed: {areas_failed}
    </mj-text>

    <mj-text font-size="14px" color="{THEME['text_muted']}" padding="16px 0 0 0">
      {error_items}
    </mj-text>
    """

    return get_base_template(
        title="Property Sync Alert",
        preview_text=f"{schedule_name} finished with status {status}",
        content_sections=content,
        cta_url=f"{SITE_URL}/admin/sync",
        cta_label="Open Sync Dashboard",
    )
