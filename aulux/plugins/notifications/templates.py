"""
Message templates per notification type: email subject + HTML body, WhatsApp text.
Texts are in Spanish, as read by students and teachers.
"""
from html import escape
from typing import Any, Dict

NEW_TASK = "new_task"
DUE_SOON = "due_soon"
OVERDUE = "overdue"
SUBMISSION_RECEIVED = "submission_received"
TASK_RETURNED = "task_returned"

NOTIFICATION_TYPES = (NEW_TASK, DUE_SOON, OVERDUE, SUBMISSION_RECEIVED, TASK_RETURNED)

_SUBJECTS = {
    NEW_TASK: "📚 Nueva tarea: {taskTitle}",
    DUE_SOON: "⏰ Tarea vence pronto: {taskTitle}",
    OVERDUE: "🚨 Tarea vencida: {taskTitle}",
    SUBMISSION_RECEIVED: "✅ Nueva entrega: {taskTitle}",
    TASK_RETURNED: "📝 Tarea devuelta: {taskTitle}",
}

_EMAIL_HEADER = (
    '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
    '<div style="background: #3B82F6; color: white; padding: 20px; border-radius: 8px 8px 0 0;">'
    '<h1 style="margin: 0; font-size: 24px;">Aulux - Semillero Digital</h1>'
    "</div>"
    '<div style="background: #f9fafb; padding: 20px; border-radius: 0 0 8px 8px; border: 1px solid #e5e7eb;">'
)

_EMAIL_FOOTER = (
    "</div>"
    '<div style="text-align: center; margin-top: 20px; color: #6b7280; font-size: 12px;">'
    "<p>Este es un mensaje automático de Aulux. No responder a este email.</p>"
    "</div>"
    "</div>"
)

_WHATSAPP_HEADER = "🎓 *Aulux - Semillero Digital*\n\n"


def _fields(data: Dict[str, Any]) -> Dict[str, str]:
    keys = ("taskTitle", "courseName", "dueDate", "studentName", "teacherName", "submissionDate")
    return {k: str(data.get(k) or "") for k in keys}


def email_subject(notification_type: str, data: Dict[str, Any]) -> str:
    template = _SUBJECTS.get(notification_type)
    if not template:
        return "📢 Notificación de Aulux"
    return template.format(**_fields(data))


def email_html(notification_type: str, data: Dict[str, Any]) -> str:
    f = {k: escape(v) for k, v in _fields(data).items()}
    task = f"<p><strong>Tarea:</strong> {f['taskTitle']}</p><p><strong>Curso:</strong> {f['courseName']}</p>"

    if notification_type == NEW_TASK:
        body = (
            '<h2 style="color: #1f2937;">📚 Nueva tarea asignada</h2>'
            + task
            + (f"<p><strong>Fecha límite:</strong> {f['dueDate']}</p>" if f["dueDate"] else "")
            + "<p>Revisa los detalles en Google Classroom o en tu dashboard de Aulux.</p>"
        )
    elif notification_type == DUE_SOON:
        body = (
            '<h2 style="color: #f59e0b;">⏰ Tarea vence pronto</h2>'
            + task
            + f"<p><strong>Vence:</strong> {f['dueDate']}</p>"
            + '<p style="color: #f59e0b;"><strong>¡No olvides entregar a tiempo!</strong></p>'
        )
    elif notification_type == OVERDUE:
        body = (
            '<h2 style="color: #ef4444;">🚨 Tarea vencida</h2>'
            + task
            + f"<p><strong>Venció:</strong> {f['dueDate']}</p>"
            + '<p style="color: #ef4444;"><strong>Entrega lo antes posible para evitar penalizaciones.</strong></p>'
        )
    elif notification_type == SUBMISSION_RECEIVED:
        body = (
            '<h2 style="color: #10b981;">✅ Nueva entrega recibida</h2>'
            + f"<p><strong>Estudiante:</strong> {f['studentName']}</p>"
            + task
            + f"<p><strong>Entregado:</strong> {f['submissionDate']}</p>"
            + "<p>Revisa la entrega en Google Classroom.</p>"
        )
    elif notification_type == TASK_RETURNED:
        body = (
            '<h2 style="color: #8b5cf6;">📝 Tarea devuelta con comentarios</h2>'
            + task
            + f"<p><strong>Profesor:</strong> {f['teacherName']}</p>"
            + "<p>Tu profesor ha devuelto la tarea con comentarios. "
            "Revisa Google Classroom para ver los detalles.</p>"
        )
    else:
        body = "<h2>Notificación de Aulux</h2><p>Tienes una nueva notificación en tu dashboard.</p>"
    return _EMAIL_HEADER + body + _EMAIL_FOOTER


def whatsapp_text(notification_type: str, data: Dict[str, Any]) -> str:
    f = _fields(data)
    task = f"📝 Tarea: {f['taskTitle']}\n📖 Curso: {f['courseName']}\n"

    if notification_type == NEW_TASK:
        body = (
            "📚 *Nueva tarea asignada*\n\n"
            + task
            + (f"📅 Vence: {f['dueDate']}\n" if f["dueDate"] else "")
            + "\n¡Revisa los detalles en Classroom!"
        )
    elif notification_type == DUE_SOON:
        body = "⏰ *Tarea vence pronto*\n\n" + task + f"📅 Vence: {f['dueDate']}\n\n🚨 ¡No olvides entregar a tiempo!"
    elif notification_type == OVERDUE:
        body = "🚨 *Tarea vencida*\n\n" + task + f"📅 Venció: {f['dueDate']}\n\n⚠️ Entrega lo antes posible"
    elif notification_type == SUBMISSION_RECEIVED:
        body = (
            "✅ *Nueva entrega recibida*\n\n"
            + f"👤 Estudiante: {f['studentName']}\n"
            + task
            + f"📅 Entregado: {f['submissionDate']}\n\n📋 Revisa en Classroom"
        )
    elif notification_type == TASK_RETURNED:
        body = (
            "📝 *Tarea devuelta con comentarios*\n\n"
            + task
            + f"👨‍🏫 Profesor: {f['teacherName']}\n\n💬 Revisa los comentarios en Classroom"
        )
    else:
        body = "📢 Tienes una nueva notificación en Aulux"
    return _WHATSAPP_HEADER + body
