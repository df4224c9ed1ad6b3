from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileAllowed
from wtforms import StringField, PasswordField, BooleanField, SelectField, TextAreaField, FloatField, DateField, IntegerField
from wtforms.validators import DataRequired, Email, EqualTo, Length, NumberRange, Optional, AnyOf
from reimburse.constants import TicketCategory, TicketPriority, TicketStatus
from reimburse.exceptions import ValidationError


class ApiForm(FlaskForm):
    """Base form for the JSON API. Flask-WTF binds JSON bodies automatically.
    Non-JSON bodies are token-checked in create_app, not per form."""
    class Meta:
        csrf = False

    def first_error(self):
        for field_name, messages in self.errors.items():
            if messages:
                return f"{field_name}: {messages[0]}"
        return "Invalid request"

    def validate_or_raise(self):
        if not self.validate():
            raise ValidationError(self.first_error(), fields=self.errors)
        return self


def _strip(value):
    return value.strip() if isinstance(value, str) else value


# --- AUTH FORMS ---

class LoginForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email()],
                        filters=[lambda x: x.strip().lower() if x else x])
    password = PasswordField('Password', validators=[DataRequired()])


class ChangePasswordForm(ApiForm):
    current_password = PasswordField('Current Password', validators=[DataRequired()])
    new_password = PasswordField('New Password', validators=[DataRequired(), Length(min=6)])
    confirm_password = PasswordField('Confirm Password', validators=[Optional(), EqualTo('new_password')])


# --- EXPENSE FORMS ---

class ExpenseForm(ApiForm):
    category = IntegerField('Category', validators=[DataRequired()])
    amount = FloatField('Amount', validators=[NumberRange(min=0.01, message="Amount must be greater than zero")])
    date = DateField('Date', format='%Y-%m-%d', validators=[DataRequired()])
    vendor = StringField('Vendor', validators=[DataRequired(), Length(max=200)], filters=[_strip])
    description = TextAreaField('Description', validators=[DataRequired()], filters=[_strip])
    receipt = FileField('Receipt', validators=[FileAllowed(['pdf', 'png', 'jpg', 'jpeg'], 'Images/PDF only!')])
    acknowledge_violations = BooleanField('Submit anyway')


class CommentForm(ApiForm):
    message = TextAreaField('Message', validators=[DataRequired()], filters=[_strip])


class PaymentForm(ApiForm):
    payment_method = StringField('Payment Method', validators=[DataRequired()], filters=[_strip])
    payment_reference = StringField('Payment Reference', validators=[Optional(), Length(max=100)], filters=[_strip])


class ComplianceForm(ApiForm):
    category_id = IntegerField('Category', validators=[DataRequired()])
    amount = FloatField('Amount', validators=[NumberRange(min=0.01, message="Amount must be greater than zero")])
    vendor = StringField('Vendor', validators=[DataRequired()], filters=[_strip])
    date = DateField('Date', format='%Y-%m-%d', validators=[DataRequired()])


# --- APPROVAL FORMS ---

class ApproveForm(ApiForm):
    comments = TextAreaField('Comments', validators=[Optional()], filters=[_strip])
    # Compare-and-swap guards: the level and version the caller last saw
    level = StringField('Expected Level', validators=[Optional()])
    version = IntegerField('Expected Version', validators=[Optional()])


class RejectForm(ApiForm):
    reason = TextAreaField('Reason', filters=[_strip])
    level = StringField('Expected Level', validators=[Optional()])
    version = IntegerField('Expected Version', validators=[Optional()])


# --- TICKET FORMS ---

class TicketForm(ApiForm):
    subject = StringField('Subject', validators=[DataRequired(), Length(max=200)], filters=[_strip])
    category = SelectField('Category', choices=[(c, c) for c in TicketCategory.ALL], validators=[DataRequired()])
    description = TextAreaField('Description', validators=[DataRequired()], filters=[_strip])
    expense_id = StringField('Expense ID', validators=[Optional()], filters=[_strip])
    priority = StringField('Priority', validators=[Optional(), AnyOf(TicketPriority.ALL)])


class TicketReplyForm(ApiForm):
    message = TextAreaField('Message', validators=[DataRequired()], filters=[_strip])


class TicketStatusForm(ApiForm):
    status = SelectField('Status', choices=[(s, s) for s in TicketStatus.ALL], validators=[DataRequired()])
