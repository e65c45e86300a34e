import logging
from datetime import datetime
from html import escape

from aiogram import Bot, Router, F
from aiogram.filters import Command, CommandObject
from aiogram.types import Message, BufferedInputFile

from npsbot.config.settings import settings
from npsbot.domain.enums import Language, Scope, ServiceType
from npsbot.domain.exceptions import CodeGenerationError, CodeNotFound
from npsbot.domain.repositories import AbstractProjectRepository
from npsbot.presentation.keyboards.admin import admin_kb, NPS_REPORT, CODES_LIST, EXCEL_EXPORT, BACKUP
from npsbot.use_cases.backup import BackupService
from npsbot.use_cases.code_registry import CodeRegistry
from npsbot.use_cases.reporting import ReportService
from npsbot.utils.formatters import CATEGORY_LABELS, STATUS_LABELS, format_answer, format_datetime, format_duration

logger = logging.getLogger(__name__)

router = Router()

CODES_LIST_LIMIT = 30

NEWCODE_USAGE = (
    "Usage:\n"
    "<code>/newcode project_id;service_type;language;email;name[;scope,scope]</code>\n\n"
    f"service_type: {', '.join(ServiceType)}\n"
    f"language: {', '.join(Language)}\n"
    f"scopes: {escape(', '.join(Scope))}"
)

def is_admin(user_id: int) -> bool:
    return user_id in settings.ADMIN_IDS

def split_args(command: CommandObject) -> list[str]:
    if not command.args:
        return []
    return [part.strip() for part in command.args.split(";")]

def format_segment(title: str, result) -> str:
    return (
        f"<b>{escape(title)}</b>: NPS <b>{result.nps}</b> "
        f"(🟢 {result.promoters} · 🟡 {result.neutrals} · 🔴 {result.detractors} · n={result.total})"
    )

@router.message(Command("admin"))
async def admin_panel(message: Message):
    if not is_admin(message.from_user.id):
        await message.answer("You are not an administrator.")
        return

    text = (
        "👨‍💻 <b>Admin Panel</b>\n\n"
        "/newcode — issue a survey code\n"
        "/addcompany — add a company\n"
        "/addproject — add a project\n"
        "/projects — list projects\n"
        "/code &lt;code&gt; — answers of one code"
    )
    await message.answer(text, parse_mode="HTML", reply_markup=admin_kb)

@router.message(Command("addcompany"))
async def add_company(message: Message, command: CommandObject, project_repo: AbstractProjectRepository):
    if not is_admin(message.from_user.id):
        return

    args = split_args(command)
    if len(args) != 2 or not all(args):
        await message.answer("Usage: <code>/addcompany name;cnpj</code>", parse_mode="HTML")
        return

    company = await project_repo.add_company(name=args[0], cnpj=args[1])
    await message.answer(f"✅ Company <b>{escape(company.name)}</b> added with id {company.id}.", parse_mode="HTML")

@router.message(Command("addproject"))
async def add_project(message: Message, command: CommandObject, project_repo: AbstractProjectRepository):
    if not is_admin(message.from_user.id):
        return

    args = split_args(command)
    if len(args) != 2 or not args[0].isdigit() or not args[1]:
        await message.answer("Usage: <code>/addproject company_id;name</code>", parse_mode="HTML")
        return

    project = await project_repo.add_project(company_id=int(args[0]), name=args[1])
    await message.answer(f"✅ Project <b>{escape(project.name)}</b> added with id {project.id}.", parse_mode="HTML")

@router.message(Command("projects"))
async def list_projects(message: Message, project_repo: AbstractProjectRepository):
    if not is_admin(message.from_user.id):
        return

    projects = await project_repo.get_all_projects()
    if not projects:
        await message.answer("No projects yet. Add one with /addproject.")
        return

    text = "📁 <b>Projects:</b>\n\n"
    for p in projects:
        text += f"{p.id}. {escape(p.name)} — {escape(p.company.name)}\n"
    await message.answer(text, parse_mode="HTML")

@router.message(Command("newcode"))
async def new_code(
    message: Message,
    command: CommandObject,
    bot: Bot,
    registry: CodeRegistry,
    project_repo: AbstractProjectRepository
):
    if not is_admin(message.from_user.id):
        return

    args = split_args(command)
    if len(args) not in (5, 6) or not args[0].isdigit():
        await message.answer(NEWCODE_USAGE, parse_mode="HTML")
        return

    project_id, service_type, language, email, name = args[:5]
    scopes = [s.strip() for s in args[5].split(",") if s.strip()] if len(args) == 6 else []

    if service_type not in list(ServiceType) or language not in list(Language):
        await message.answer(NEWCODE_USAGE, parse_mode="HTML")
        return
    unknown = [s for s in scopes if s not in list(Scope)]
    if unknown or not email or not name:
        await message.answer(NEWCODE_USAGE, parse_mode="HTML")
        return

    project = await project_repo.get_project(int(project_id))
    if project is None:
        await message.answer(f"❌ Project {project_id} does not exist. See /projects.")
        return

    try:
        survey_code = await registry.issue(
            name=name,
            email=email,
            project_id=project.id,
            service_type=service_type,
            language=language,
            scopes=scopes
        )
    except CodeGenerationError as e:
        logger.error(f"Code generation failed: {e}")
        await message.answer("❌ Could not generate a unique code, please try again.")
        return

    bot_info = await bot.get_me()
    link = f"https://t.me/{bot_info.username}?start={survey_code.code}"
    text = (
        f"✅ Code <code>{survey_code.code}</code> generated for <b>{escape(name)}</b> "
        f"({escape(project.name)}).\n\n"
        f"🔗 Survey link:\n{link}"
    )
    await message.answer(text, parse_mode="HTML")

@router.message(Command("code"))
async def code_details(message: Message, command: CommandObject, report_service: ReportService):
    if not is_admin(message.from_user.id):
        return

    if not command.args:
        await message.answer("Usage: <code>/code ABC12345</code>", parse_mode="HTML")
        return

    try:
        details = await report_service.code_details(command.args)
    except CodeNotFound:
        await message.answer("❌ Code not found.")
        return

    c = details.survey_code
    text = (
        f"🔎 <b>{c.code}</b> — {STATUS_LABELS[details.status]}\n\n"
        f"👤 {escape(c.name)} &lt;{escape(c.email)}&gt;\n"
        f"📁 {escape(c.project.name) if c.project else 'N/A'} · {c.service_type} · {c.language}\n"
        f"🏷 {escape(', '.join(c.scopes or [])) or '—'}\n"
        f"🕒 Generated {format_datetime(c.generated_at)} · started {format_datetime(c.started_at)} · "
        f"completed {format_datetime(c.completed_at)}\n"
    )
    if details.duration is not None:
        text += f"⏱ Time spent: {format_duration(details.duration)}\n"
    if details.category is not None:
        text += f"\nNPS category: {CATEGORY_LABELS[details.category]}\n"

    text += "\n<b>Answers:</b>\n"
    if not details.timeline:
        text += "No answers yet.\n"
    for row in details.timeline:
        text += f"{format_datetime(row.timestamp)} · <i>{row.question_id}</i>: {format_answer(row.answer)}\n"

    await message.answer(text, parse_mode="HTML")

@router.message(F.text == NPS_REPORT)
async def nps_report(message: Message, report_service: ReportService):
    if not is_admin(message.from_user.id):
        return

    report = await report_service.nps_report()
    lines = [
        "📊 <b>NPS report</b>\n",
        format_segment("Recommend", report.recommend),
        format_segment("Rehire", report.rehire),
        "\n<b>By service type</b>",
    ]
    lines += [format_segment(name, result) for name, result in report.by_service_type.items()] or ["—"]
    lines.append("\n<b>By scope</b>")
    lines += [format_segment(name, result) for name, result in report.by_scope.items()] or ["—"]

    await message.answer("\n".join(lines), parse_mode="HTML")

@router.message(F.text == CODES_LIST)
async def codes_list(message: Message, report_service: ReportService):
    if not is_admin(message.from_user.id):
        return

    codes = await report_service.list_codes()
    if not codes:
        await message.answer("No codes generated yet.")
        return

    text = "📋 <b>Generated codes:</b>\n\n"
    for c, status in codes[:CODES_LIST_LIMIT]:
        text += f"<code>{c.code}</code> · {escape(c.name)} · {c.service_type} · {STATUS_LABELS[status]}\n"
    if len(codes) > CODES_LIST_LIMIT:
        text += f"\n… and {len(codes) - CODES_LIST_LIMIT} more (see the Excel export)."
    await message.answer(text, parse_mode="HTML")

@router.message(F.text == EXCEL_EXPORT)
async def export_excel(message: Message, report_service: ReportService):
    if not is_admin(message.from_user.id):
        return

    content = await report_service.export_workbook()
    document = BufferedInputFile(content, filename="nps_responses.xlsx")
    await message.answer_document(document, caption="📥 <b>Responses (Excel)</b>", parse_mode="HTML")

@router.message(F.text == BACKUP)
async def backup_database(message: Message, backup_service: BackupService):
    if not is_admin(message.from_user.id):
        return

    content = await backup_service.create_backup()
    filename = f"backup_{datetime.now().strftime('%Y%m%d_%H%M')}.xlsx"
    await message.answer_document(BufferedInputFile(content, filename=filename), caption="💾 Database backup")
    logger.info(f"Backup sent to admin {message.from_user.id}")
