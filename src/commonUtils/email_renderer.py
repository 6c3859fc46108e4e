"""
Email template renderer using Jinja2 for easy maintenance
"""
from pathlib import Path
from typing import Optional
from jinja2 import Environment, FileSystemLoader, select_autoescape
from datetime import datetime
from src.config.settings import settings


class EmailRenderer:
    """Renders email templates using Jinja2"""

    def __init__(self, template_dir: str = "src/templates/emails"):
        """
        Initialize email renderer

        Args:
            template_dir: Directory containing email template files, relative to the project root
        """
        # Resolve relative to the directory that contains 'src', not the CWD
        anchor_dir = Path(__file__).resolve().parent

        project_root = anchor_dir
        while project_root.name != 'src' and project_root.parent != project_root:
            project_root = project_root.parent

        if project_root.name == 'src':
            self.template_dir = project_root.parent / template_dir
        else:
            self.template_dir = Path(template_dir)

        self.env = Environment(
            loader=FileSystemLoader(self.template_dir),
            autoescape=select_autoescape(['html', 'xml'])
        )

        # Brand configuration - change once, applies everywhere
        self.brand_config = {
            'frontend_url': settings.FRONTEND_URL,
            'colors': {
                'primary': '#0F766E',
                'light_gray': '#F9FAFB',
                'dark_text': '#1F2937',
                'light_text': '#6B7280',
            },
            'company_name': settings.PLATFORM_NAME,
            'support_email': settings.MAIL_FROM,
            'year': datetime.utcnow().year
        }

    def render(self, template_name: str, **context) -> str:
        """
        Render an email template with context

        Args:
            template_name: Name of template file (e.g., 'verify_email.html')
            **context: Variables to pass to template

        Returns:
            Rendered HTML string
        """
        template = self.env.get_template(template_name)

        # Merge brand config with user context
        full_context = {**self.brand_config, **context}

        return template.render(**full_context)

    def _link(self, path: str, frontend_url: Optional[str] = None) -> str:
        return f"{frontend_url or self.brand_config['frontend_url']}{path}"

    def verification_email(self, user_email: str, user_name: Optional[str],
                           token: str, frontend_url: str) -> str:
        """Render verification email"""
        return self.render(
            'verify_email.html',
            user_name=user_name or 'there',
            user_email=user_email,
            verify_link=f"{frontend_url}/verify-email?token={token}"
        )

    def password_reset_email(self, user_email: str, user_name: Optional[str],
                             token: str, frontend_url: str) -> str:
        """Render password reset email"""
        return self.render(
            'password_reset.html',
            user_name=user_name or 'there',
            user_email=user_email,
            reset_link=f"{frontend_url}/reset-password?token={token}"
        )

    def password_reset_confirmation_email(self, user_email: str,
                                          user_name: Optional[str],
                                          frontend_url: str) -> str:
        return self.render(
            'password_reset_confirmation.html',
            user_name=user_name or 'there',
            user_email=user_email,
            login_link=f"{frontend_url}/login",
            reset_time=datetime.utcnow().strftime('%B %d, %Y at %I:%M %p UTC')
        )

    def welcome_registration_email(self, user_email: str,
                                   user_name: Optional[str],
                                   frontend_url: str = None) -> str:
        return self.render(
            'welcome_registration.html',
            user_name=user_name or 'there',
            user_email=user_email,
            dashboard_link=self._link("/dashboard", frontend_url)
        )

    def booking_request_provider_email(self, provider_name: Optional[str],
                                       service_title: str,
                                       price: str,
                                       scheduled_date: Optional[str] = None,
                                       frontend_url: str = None) -> str:
        """Render new booking request notification for the provider"""
        return self.render(
            'booking_request_provider.html',
            provider_name=provider_name or 'there',
            service_title=service_title,
            price=price,
            scheduled_date=scheduled_date,
            bookings_link=self._link("/dashboard/provider/bookings", frontend_url)
        )

    def booking_status_update_email(self, recipient_name: Optional[str],
                                    service_title: str,
                                    status_label: str,
                                    next_step: str,
                                    price: Optional[str] = None,
                                    reason: Optional[str] = None,
                                    provider_message: Optional[str] = None,
                                    frontend_url: str = None) -> str:
        """Render booking status change notification"""
        return self.render(
            'booking_status_update.html',
            recipient_name=recipient_name or 'there',
            service_title=service_title,
            status_label=status_label,
            next_step=next_step,
            price=price,
            reason=reason,
            provider_message=provider_message,
            bookings_link=self._link("/dashboard/bookings", frontend_url)
        )

    def provider_approved_email(self, provider_name: Optional[str],
                                frontend_url: str = None) -> str:
        """Render provider approval notification email"""
        return self.render(
            'provider_approved.html',
            provider_name=provider_name or 'there',
            dashboard_link=self._link("/dashboard/provider", frontend_url)
        )

    def provider_rejected_email(self, provider_name: Optional[str],
                                rejection_reason: Optional[str] = None,
                                frontend_url: str = None) -> str:
        """Render provider rejection notification email"""
        return self.render(
            'provider_rejected.html',
            provider_name=provider_name or 'there',
            rejection_reason=rejection_reason,
            dashboard_link=self._link("/dashboard/provider", frontend_url)
        )

    def provider_suspension_email(self, provider_name: Optional[str],
                                  suspended: bool,
                                  reason: Optional[str] = None,
                                  end_date: Optional[str] = None,
                                  frontend_url: str = None) -> str:
        return self.render(
            'provider_suspended.html',
            provider_name=provider_name or 'there',
            suspended=suspended,
            reason=reason,
            end_date=end_date,
            dashboard_link=self._link("/dashboard/provider", frontend_url)
        )


# Singleton instance
_renderer = None


def get_email_renderer(template_dir: str = "src/templates/emails") -> EmailRenderer:
    """Get or create email renderer instance"""
    global _renderer
    if _renderer is None:
        _renderer = EmailRenderer(template_dir)
    return _renderer


def get_verification_email(user_email: str, user_name: Optional[str],
                           token: str, frontend_url: str) -> str:
    return get_email_renderer().verification_email(user_email, user_name, token, frontend_url)


def get_password_reset_email(user_email: str, user_name: Optional[str],
                             token: str, frontend_url: str) -> str:
    return get_email_renderer().password_reset_email(user_email, user_name, token, frontend_url)


def get_password_reset_confirmation_email(user_email: str, user_name: Optional[str],
                                          frontend_url: str) -> str:
    return get_email_renderer().password_reset_confirmation_email(user_email, user_name, frontend_url)


def get_welcome_registration_email(user_email: str, user_name: Optional[str],
                                   frontend_url: str = None) -> str:
    return get_email_renderer().welcome_registration_email(user_email, user_name, frontend_url)


def get_booking_request_provider_email(provider_name: Optional[str], service_title: str, price: str,
                                       scheduled_date: Optional[str] = None,
                                       frontend_url: str = None) -> str:
    return get_email_renderer().booking_request_provider_email(
        provider_name, service_title, price, scheduled_date, frontend_url
    )


def get_booking_status_update_email(recipient_name: Optional[str], service_title: str,
                                    status_label: str, next_step: str,
                                    price: Optional[str] = None, reason: Optional[str] = None,
                                    provider_message: Optional[str] = None,
                                    frontend_url: str = None) -> str:
    return get_email_renderer().booking_status_update_email(
        recipient_name, service_title, status_label, next_step,
        price, reason, provider_message, frontend_url
    )


def get_provider_approved_email(provider_name: Optional[str], frontend_url: str = None) -> str:
    return get_email_renderer().provider_approved_email(provider_name, frontend_url)


def get_provider_rejected_email(provider_name: Optional[str], rejection_reason: Optional[str] = None,
                                frontend_url: str = None) -> str:
    return get_email_renderer().provider_rejected_email(provider_name, rejection_reason, frontend_url)


def get_provider_suspension_email(provider_name: Optional[str], suspended: bool,
                                  reason: Optional[str] = None, end_date: Optional[str] = None,
                                  frontend_url: str = None) -> str:
    return get_email_renderer().provider_suspension_email(provider_name, suspended, reason, end_date, frontend_url)
