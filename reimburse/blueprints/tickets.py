from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from reimburse.forms import TicketForm, TicketReplyForm, TicketStatusForm
from reimburse.services.ticket_service import TicketService
from reimburse.utils import admin_required

tickets_bp = Blueprint('tickets', __name__)


@tickets_bp.route('', methods=['POST'])
@login_required
def create_ticket():
    form = TicketForm().validate_or_raise()
    ticket = TicketService.create_ticket({
        'subject': form.subject.data,
        'category': form.category.data,
        'description': form.description.data,
        'expense_id': form.expense_id.data,
        'priority': form.priority.data,
    }, current_user)
    return jsonify({'message': 'Ticket raised', 'ticket': ticket.to_dict()}), 201


@tickets_bp.route('/my-tickets')
@login_required
def my_tickets():
    return jsonify({'tickets': [t.to_dict() for t in TicketService.get_my_tickets(current_user)]})


@tickets_bp.route('', methods=['GET'])
@login_required
@admin_required
def all_tickets():
    tickets = TicketService.get_all_tickets(status=request.args.get('status'))
    return jsonify({'tickets': [t.to_dict() for t in tickets]})


@tickets_bp.route('/<ticket_id>')
@login_required
def get_ticket(ticket_id):
    return jsonify({'ticket': TicketService.get_ticket(ticket_id, current_user).to_dict()})


@tickets_bp.route('/<ticket_id>/reply', methods=['POST'])
@login_required
def reply(ticket_id):
    form = TicketReplyForm().validate_or_raise()
    ticket = TicketService.add_reply(ticket_id, form.message.data, current_user)
    return jsonify({'message': 'Reply added', 'ticket': ticket.to_dict()})


@tickets_bp.route('/<ticket_id>/status', methods=['PUT', 'POST'])
@login_required
def update_status(ticket_id):
    form = TicketStatusForm().validate_or_raise()
    ticket = TicketService.update_status(ticket_id, form.status.data, current_user)
    return jsonify({'message': 'Ticket updated', 'ticket': ticket.to_dict()})
