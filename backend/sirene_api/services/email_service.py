"""
Service d'envoi d'emails SMTP.
Utilisé pour les rappels d'expiration d'abonnement envoyés aux écoles.
"""

import logging
import smtplib
from datetime import date
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from sirene_api.config import settings

logger = logging.getLogger(__name__)


def send_expiration_email(
    to_email: str,
    ecole_nom: str,
    numero_abonnement: str,
    date_fin: date,
    jours_restants: int,
    lien_paiement: str,
    qr_image_bytes: Optional[bytes] = None,
) -> None:
    """
    Envoie un email HTML de rappel d'expiration à une école.
    Le QR code de paiement, s'il est fourni, est intégré en ligne (Content-ID).
    Lève une exception en cas d'échec SMTP.
    """
    msg = MIMEMultipart("related")
    msg["From"] = settings.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = (
        f"Sirène d'école : votre abonnement {numero_abonnement} expire "
        f"le {date_fin.strftime('%d/%m/%Y')}"
    )

    qr_block = ""
    if qr_image_bytes:
        qr_block = """
        <div style="text-align: center; margin: 24px 0;">
          <img src="cid:qrcode" alt="QR Code de paiement" style="width: 220px; height: 220px;" />
        </div>
        """

    html_content = f"""
    <html>
      <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: auto;">
        <h2 style="color: #c0392b;">Sirène d'école : rappel d'expiration</h2>
        <p>Bonjour {ecole_nom},</p>
        <p>
          Votre abonnement <strong>{numero_abonnement}</strong> expire dans
          <strong>{jours_restants} jour(s)</strong>, le <strong>{date_fin.strftime('%d/%m/%Y')}</strong>.
        </p>
        <p>
          Pensez à le renouveler pour que votre sirène reste active :
          <a href="{lien_paiement}">{lien_paiement}</a>
        </p>
        {qr_block}
        <hr style="border: none; border-top: 1px solid #eee;" />
        <p style="font-size: 12px; color: #888;">
          Ce message est généré automatiquement. Ne pas répondre à cet email.
        </p>
      </body>
    </html>
    """

    html_part = MIMEMultipart("alternative")
    html_part.attach(MIMEText(html_content, "html", "utf-8"))
    msg.attach(html_part)

    if qr_image_bytes:
        qr_attachment = MIMEImage(qr_image_bytes, name="qrcode.png")
        qr_attachment.add_header("Content-ID", "<qrcode>")
        qr_attachment.add_header("Content-Disposition", "inline", filename="qrcode.png")
        msg.attach(qr_attachment)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        if settings.SMTP_USE_TLS:
            server.starttls()
        if settings.SMTP_USERNAME:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.send_message(msg)

    logger.info("Rappel d'expiration envoyé à %s (abonnement %s)", to_email, numero_abonnement)
