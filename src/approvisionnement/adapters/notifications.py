"""
Adapter pour les notifications.

Ce module fournit une abstraction sur l'envoi de notifications
(assignation d'une commande à un fournisseur, validation d'une
commande), permettant de découpler le service du mécanisme d'envoi.
"""

from __future__ import annotations

import abc
import smtplib
from email.message import EmailMessage


class AbstractNotifications(abc.ABC):
    """Interface abstraite pour les notifications."""

    @abc.abstractmethod
    def send(self, destination: str, sujet: str, message: str) -> None:
        raise NotImplementedError


class EmailNotifications(AbstractNotifications):
    """Implémentation concrète envoyant des emails via SMTP."""

    def __init__(
        self,
        smtp_host: str = "localhost",
        smtp_port: int = 587,
        expéditeur: str = "commandes@example.com",
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.expéditeur = expéditeur

    def send(self, destination: str, sujet: str, message: str) -> None:
        email = EmailMessage()
        email["From"] = self.expéditeur
        email["To"] = destination
        email["Subject"] = sujet
        email.set_content(message)
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as smtp:
            smtp.send_message(email)
