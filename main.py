import flet as ft
import asyncio
import logging
from datetime import datetime

from memodeck.config import get_flip_delay_seconds
from memodeck.engine import DuplicateCardError
from memodeck.services import DeckService


def format_last_played(value):
    if not value:
        return "Never"
    try:
        return datetime.fromisoformat(value).strftime("%Y-%m-%d")
    except ValueError:
        return value


def main(page: ft.Page):
    page.title = "MemoDeck"
    page.theme_mode = ft.ThemeMode.LIGHT
    page.padding = 0
    page.bgcolor = ft.Colors.WHITE

    page.theme = ft.Theme(
        color_scheme=ft.ColorScheme(
            primary="#6366f1",
            secondary="#10b981",
            surface=ft.Colors.WHITE,
        )
    )

    service = DeckService()
    active = {"deck_id": None, "export_id": None}

    # ===== FILE PICKERS (deck export / import) =====
    def on_export_result(e: ft.FilePickerResultEvent):
        if not e.path or not active["export_id"]:
            return
        success, message = service.export_deck_file(active["export_id"], e.path)
        active["export_id"] = None
        show_message(message if success else f"Error: {message}", ft.Colors.GREEN_600 if success else ft.Colors.ERROR)

    def on_import_result(e: ft.FilePickerResultEvent):
        if not e.files:
            return
        messages = []
        for picked in e.files:
            success, message = service.import_deck_file(picked.path)
            messages.append(message)
        show_message(" | ".join(messages), ft.Colors.BLUE_GREY_600)
        if page.route == "/":
            refresh(get_home_view)

    export_picker = ft.FilePicker(on_result=on_export_result)
    import_picker = ft.FilePicker(on_result=on_import_result)
    page.overlay.extend([export_picker, import_picker])

    def show_message(text, color=ft.Colors.GREEN_600):
        page.snack_bar = ft.SnackBar(ft.Text(text), bgcolor=color)
        page.snack_bar.open = True
        page.update()

    def refresh(view_builder):
        page.views.pop()
        page.views.append(view_builder())
        page.update()

    # --- Views ---

    def get_home_view():

        def start_study(deck_id):
            def handler(e):
                try:
                    session = service.start_session(deck_id)
                except DuplicateCardError as err:
                    show_message(f"Error: {err}", ft.Colors.ERROR)
                    return
                if session is None:
                    show_message("Deck not found", ft.Colors.ERROR)
                    return
                active["deck_id"] = deck_id
                page.go("/study")
            return handler

        def delete_deck(deck_id, title):
            def handler(e):
                def confirm(ev):
                    page.close(dlg)
                    service.delete_deck(deck_id)
                    show_message(f"Deleted {title}", ft.Colors.ORANGE_600)
                    refresh(get_home_view)

                dlg = ft.AlertDialog(
                    title=ft.Text("Delete Deck"),
                    content=ft.Text(f'Are you sure you want to delete the deck "{title}"? This action cannot be undone.'),
                    actions=[
                        ft.TextButton("Cancel", on_click=lambda ev: page.close(dlg)),
                        ft.ElevatedButton("Delete", on_click=confirm,
                                          style=ft.ButtonStyle(bgcolor=ft.Colors.RED_600, color=ft.Colors.WHITE)),
                    ]
                )
                page.open(dlg)
            return handler

        # ===== NEW DECK DIALOG =====
        def open_new_deck_dialog(e):
            title_field = ft.TextField(label="Title", width=500)
            description_field = ft.TextField(label="Description", multiline=True, min_lines=2, max_lines=4, width=500)

            def save_deck(ev):
                if not title_field.value or not title_field.value.strip():
                    show_message("A deck needs a title!", ft.Colors.ORANGE)
                    return
                service.create_deck(title_field.value.strip(), description_field.value or "")
                page.close(dlg)
                show_message("Deck created!")
                refresh(get_home_view)

            dlg = ft.AlertDialog(
                title=ft.Text("New Deck"),
                content=ft.Column([title_field, description_field], tight=True, spacing=15),
                actions=[
                    ft.TextButton("Cancel", on_click=lambda ev: page.close(dlg)),
                    ft.ElevatedButton("Create", on_click=save_deck),
                ]
            )
            page.open(dlg)

        # ===== ADD CARD DIALOG =====
        def open_add_card_dialog(deck_id):
            def handler(e):
                front_field = ft.TextField(label="Front", multiline=True, min_lines=2, max_lines=5, width=500)
                back_field = ft.TextField(label="Back", multiline=True, min_lines=3, max_lines=10, width=500)

                def save_card(ev):
                    if not front_field.value or not back_field.value:
                        show_message("Fill in both sides of the card!", ft.Colors.ORANGE)
                        return
                    if service.add_card(deck_id, front_field.value, back_field.value):
                        page.close(dlg)
                        show_message("Card added!")
                        refresh(get_home_view)

                dlg = ft.AlertDialog(
                    title=ft.Text("Add Card"),
                    content=ft.Column([front_field, back_field], tight=True, spacing=15),
                    actions=[
                        ft.TextButton("Cancel", on_click=lambda ev: page.close(dlg)),
                        ft.ElevatedButton("Add", on_click=save_card),
                    ]
                )
                page.open(dlg)
            return handler

        # ===== CSV IMPORT DIALOG =====
        def open_csv_dialog(deck_id):
            def handler(e):
                path_field = ft.TextField(label="Path to CSV file", width=500)

                def do_import(ev):
                    success, message = service.import_cards_csv(deck_id, path_field.value or "")
                    page.close(dlg)
                    if success:
                        show_message(message)
                        refresh(get_home_view)
                    else:
                        show_message(f"Error: {message}", ft.Colors.ERROR)

                dlg = ft.AlertDialog(
                    title=ft.Text("Import Cards from CSV"),
                    content=path_field,
                    actions=[
                        ft.TextButton("Cancel", on_click=lambda ev: page.close(dlg)),
                        ft.ElevatedButton("Import", on_click=do_import),
                    ]
                )
                page.open(dlg)
            return handler

        def export_deck(deck):
            def handler(e):
                active["export_id"] = deck.id
                export_picker.save_file(
                    file_name=service.export_filename(deck),
                    allowed_extensions=["json"],
                )
            return handler

        def deck_tile(deck):
            card_count = len(deck.cards)
            return ft.Container(
                content=ft.Column(
                    [
                        ft.Text(deck.title, size=20, weight=ft.FontWeight.BOLD, color="#1f2937"),
                        ft.Text(deck.description or "No description", size=13, color="#6b7280"),
                        ft.Text(f"{card_count} card{'s' if card_count != 1 else ''}", size=12, color="#374151"),
                        ft.Text(f"Last played: {format_last_played(deck.last_played)}", size=12, color="#374151"),
                        ft.ElevatedButton(
                            "Play",
                            icon=ft.Icons.PLAY_ARROW,
                            disabled=card_count == 0,
                            on_click=start_study(deck.id),
                            style=ft.ButtonStyle(bgcolor="#6366f1", color="#ffffff", padding=12),
                        ),
                        ft.Row(
                            [
                                ft.IconButton(ft.Icons.EDIT, tooltip="Edit deck", on_click=lambda e, d=deck.id: page.go(f"/deck/{d}")),
                                ft.IconButton(ft.Icons.ADD, tooltip="Add card", on_click=open_add_card_dialog(deck.id)),
                                ft.IconButton(ft.Icons.UPLOAD_FILE, tooltip="Import CSV", on_click=open_csv_dialog(deck.id)),
                                ft.IconButton(ft.Icons.DOWNLOAD, tooltip="Export deck", on_click=export_deck(deck)),
                                ft.IconButton(ft.Icons.DELETE_OUTLINE, tooltip="Delete deck",
                                              icon_color=ft.Colors.RED_400, on_click=delete_deck(deck.id, deck.title)),
                            ],
                            alignment=ft.MainAxisAlignment.SPACE_AROUND,
                        ),
                    ],
                    spacing=6,
                ),
                width=280,
                padding=20,
                bgcolor="#ffffff",
                border_radius=12,
                border=ft.border.all(1, "#e5e7eb"),
            )

        decks = service.list_decks()
        deck_grid = ft.Row(
            [deck_tile(deck) for deck in decks],
            wrap=True,
            spacing=15,
            run_spacing=15,
            alignment=ft.MainAxisAlignment.CENTER,
        )
        if not decks:
            deck_grid = ft.Text("No decks yet. Create one to get started.", italic=True, color="#6b7280")

        return ft.View(
            "/",
            [
                ft.AppBar(title=ft.Text("MemoDeck", weight=ft.FontWeight.BOLD, color="#6366f1"), bgcolor=ft.Colors.WHITE),
                ft.Container(
                    content=ft.Column(
                        [
                            ft.Row(
                                [
                                    ft.Text("Your Decks", size=28, weight=ft.FontWeight.BOLD, color="#1f2937"),
                                    ft.Row(
                                        [
                                            ft.OutlinedButton("Import", icon=ft.Icons.UPLOAD, on_click=lambda e: import_picker.pick_files(
                                                allowed_extensions=["json"], allow_multiple=True)),
                                        ft.ElevatedButton("New Deck", icon=ft.Icons.ADD, on_click=open_new_deck_dialog),
                                        ]
                                    ),
                                ],
                                alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
                            ),
                            ft.Container(height=10),
                            deck_grid,
                        ],
                        scroll=ft.ScrollMode.AUTO,
                    ),
                    padding=30,
                    expand=True,
                    bgcolor="#f9fafb",
                )
            ],
            bgcolor="#f9fafb",
        )

    def get_study_view():
        session = service.session
        if session is None:
            return get_home_view()
        if session.is_finished:
            return get_summary_view()

        card = session.current_card

        def counter(text, color):
            return ft.Text(text, size=16, weight=ft.FontWeight.BOLD, color=color)

        counters = ft.Row(
            [
                counter(f"✅ Know: {session.known_count}", ft.Colors.GREEN_600),
                counter(f"❌ Don't Know: {session.unknown_count}", ft.Colors.RED_400),
                counter(f"⏳ Pending: {len(session.queue)}", ft.Colors.GREY_600),
            ],
            alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
            width=700,
        )

        card_label = ft.Text("QUESTION", size=12, weight=ft.FontWeight.BOLD, color="#6366f1")
        card_text = ft.Text(card.front, size=24, text_align=ft.TextAlign.CENTER, color=ft.Colors.BLACK)

        def reveal(e=None):
            if not session.reveal():
                return
            card_text.value = card.back
            card_label.value = "ANSWER"
            card_label.color = ft.Colors.BLUE_600
            card_container.bgcolor = ft.Colors.BLUE_GREY_50
            show_answer_btn.visible = False
            judge_row.visible = True
            page.update()

        async def apply_later(pending):
            await asyncio.sleep(get_flip_delay_seconds())
            if not session.apply_judgment(pending) or page.route != "/study":
                return
            if session.is_finished:
                page.go("/summary")
            else:
                refresh(get_study_view)

        def judge(known):
            def handler(e=None):
                pending = session.record_judgment(known)
                if pending is None:
                    return
                # flip back first, swap the card once the flip has started
                card_text.value = card.front
                card_label.value = "QUESTION"
                card_label.color = "#6366f1"
                card_container.bgcolor = "#ffffff"
                judge_row.visible = False
                page.update()
                page.run_task(apply_later, pending)
            return handler

        def open_exit_dialog(e=None):
            def end_session(ev):
                page.close(dlg)
                service.abort()
                page.go("/summary")

            dlg = ft.AlertDialog(
                title=ft.Text("End Session"),
                content=ft.Text("Are you sure you want to end this study session? Your progress will be saved."),
                actions=[
                    ft.TextButton("Continue Studying", on_click=lambda ev: page.close(dlg)),
                    ft.ElevatedButton("End Session", on_click=end_session),
                ]
            )
            page.open(dlg)

        card_container = ft.Container(
            content=card_text,
            alignment=ft.alignment.center,
            width=700,
            height=320,
            bgcolor="#ffffff",
            border_radius=20,
            border=ft.border.all(1, "#e2e8f0"),
            shadow=ft.BoxShadow(
                spread_radius=0,
                blur_radius=30,
                color=ft.Colors.with_opacity(0.2, ft.Colors.BLACK),
                offset=ft.Offset(0, 8),
            ),
            padding=40,
            on_click=reveal,
            animate=ft.Animation(250, ft.AnimationCurve.EASE_OUT),
        )

        show_answer_btn = ft.ElevatedButton(
            "Show Answer",
            width=700,
            height=55,
            style=ft.ButtonStyle(bgcolor="#10b981", color=ft.Colors.WHITE),
            on_click=reveal,
        )

        judge_row = ft.Row(
            [
                ft.ElevatedButton(
                    "I Didn't Know",
                    icon=ft.Icons.CLOSE,
                    width=340,
                    height=55,
                    style=ft.ButtonStyle(bgcolor=ft.Colors.RED_600, color=ft.Colors.WHITE),
                    on_click=judge(False),
                ),
                ft.ElevatedButton(
                    "I Knew It",
                    icon=ft.Icons.CHECK,
                    width=340,
                    height=55,
                    style=ft.ButtonStyle(bgcolor=ft.Colors.GREEN_600, color=ft.Colors.WHITE),
                    on_click=judge(True),
                ),
            ],
            alignment=ft.MainAxisAlignment.CENTER,
            spacing=20,
            visible=False,
        )

        # Space = flip, Right = knew it, Left = didn't know, Escape = end session
        def on_keyboard(e: ft.KeyboardEvent):
            if page.route != "/study":
                return
            if e.key == " ":
                reveal()
            elif e.key == "Arrow Right":
                judge(True)()
            elif e.key == "Arrow Left":
                judge(False)()
            elif e.key == "Escape":
                open_exit_dialog()

        page.on_keyboard_event = on_keyboard

        return ft.View(
            "/study",
            [
                ft.AppBar(
                    title=ft.Text("Study Session"),
                    bgcolor=ft.Colors.WHITE,
                    automatically_imply_leading=False,
                    actions=[ft.IconButton(ft.Icons.CLOSE, tooltip="End session", on_click=open_exit_dialog)],
                ),
                ft.Container(
                    content=ft.Column(
                        [
                            counters,
                            ft.Container(height=10),
                            card_label,
                            card_container,
                            ft.Text("👆 Click or press Space to flip", italic=True, color="#6b7280", size=12),
                            ft.Container(height=15),
                            show_answer_btn,
                            judge_row,
                        ],
                        horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                    ),
                    alignment=ft.alignment.center,
                    expand=True,
                    bgcolor="#f9fafb",
                )
            ],
            bgcolor="#f9fafb",
        )

    def get_deck_view(deck_id):
        deck = service.get_deck(deck_id)
        if deck is None:
            return get_home_view()

        title_field = ft.TextField(label="Title", value=deck.title, width=600)
        description_field = ft.TextField(label="Description", value=deck.description,
                                         multiline=True, min_lines=2, max_lines=4, width=600)

        def save_details(e):
            if not title_field.value or not title_field.value.strip():
                show_message("A deck needs a title!", ft.Colors.ORANGE)
                return
            service.update_deck(deck_id, title_field.value.strip(), description_field.value or "")
            show_message("Deck updated!")

        def open_card_dialog(card=None):
            def handler(e):
                front_field = ft.TextField(label="Front", value=card.front if card else "",
                                           multiline=True, min_lines=2, max_lines=5, width=500)
                back_field = ft.TextField(label="Back", value=card.back if card else "",
                                          multiline=True, min_lines=3, max_lines=10, width=500)

                def save_card(ev):
                    if not front_field.value or not back_field.value:
                        show_message("Fill in both sides of the card!", ft.Colors.ORANGE)
                        return
                    if card is None:
                        service.add_card(deck_id, front_field.value, back_field.value)
                    else:
                        service.update_card(deck_id, card.id, front_field.value, back_field.value)
                    page.close(dlg)
                    refresh(lambda: get_deck_view(deck_id))

                dlg = ft.AlertDialog(
                    title=ft.Text("Edit Card" if card else "Add Card"),
                    content=ft.Column([front_field, back_field], tight=True, spacing=15),
                    actions=[
                        ft.TextButton("Cancel", on_click=lambda ev: page.close(dlg)),
                        ft.ElevatedButton("Save", on_click=save_card),
                    ]
                )
                page.open(dlg)
            return handler

        def delete_card(card_id):
            def handler(e):
                service.delete_card(deck_id, card_id)
                refresh(lambda: get_deck_view(deck_id))
            return handler

        card_rows = [
            ft.Container(
                content=ft.Row(
                    [
                        ft.Column(
                            [
                                ft.Text(card.front, weight=ft.FontWeight.BOLD, color="#1f2937"),
                                ft.Text(card.back, size=13, color="#6b7280"),
                            ],
                            spacing=2,
                            expand=True,
                        ),
                        ft.IconButton(ft.Icons.EDIT, tooltip="Edit card", on_click=open_card_dialog(card)),
                        ft.IconButton(ft.Icons.DELETE_OUTLINE, tooltip="Delete card",
                                      icon_color=ft.Colors.RED_400, on_click=delete_card(card.id)),
                    ],
                ),
                bgcolor="#ffffff",
                padding=12,
                border_radius=8,
                border=ft.border.all(1, "#e5e7eb"),
                width=600,
            )
            for card in deck.cards
        ] or [ft.Text("This deck has no cards yet.", italic=True, color="#6b7280")]

        def fronts_column(label, color, card_ids):
            fronts = service.card_fronts(deck, card_ids)
            return ft.Column(
                [ft.Text(f"{label} ({len(fronts)})", weight=ft.FontWeight.BOLD, color=color)]
                + [ft.Text(f"• {front}", size=13) for front in fronts],
                spacing=2,
                expand=True,
            )

        history_tiles = [
            ft.ExpansionTile(
                title=ft.Text(
                    f"{format_last_played(session.date)} · "
                    f"{'Completed' if session.completed else 'Ended early'}"
                ),
                subtitle=ft.Text(f"✅ {session.known}  ❌ {session.unknown}  ({session.accuracy}%)"),
                controls=[
                    ft.Container(
                        content=ft.Row(
                            [
                                fronts_column("Known", ft.Colors.GREEN_600, session.known_card_ids),
                                fronts_column("Didn't know", ft.Colors.RED_400, session.unknown_card_ids),
                            ],
                            vertical_alignment=ft.CrossAxisAlignment.START,
                        ),
                        padding=ft.padding.symmetric(horizontal=16, vertical=8),
                    )
                ],
            )
            for session in deck.study_history
        ] or [ft.Text("No study sessions yet.", italic=True, color="#6b7280")]

        return ft.View(
            f"/deck/{deck_id}",
            [
                ft.AppBar(
                    title=ft.Text(f"Edit {deck.title}"),
                    bgcolor=ft.Colors.WHITE,
                    leading=ft.IconButton(ft.Icons.ARROW_BACK, on_click=lambda _: page.go("/")),
                ),
                ft.Container(
                    content=ft.Column(
                        [
                            ft.Text("Deck Details", size=20, weight=ft.FontWeight.BOLD),
                            title_field,
                            description_field,
                            ft.ElevatedButton("Save Details", icon=ft.Icons.SAVE, on_click=save_details),
                            ft.Divider(),
                            ft.Row(
                                [
                                    ft.Text(f"Cards ({len(deck.cards)})", size=20, weight=ft.FontWeight.BOLD),
                                    ft.ElevatedButton("Add Card", icon=ft.Icons.ADD, on_click=open_card_dialog()),
                                ],
                                alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
                                width=600,
                            ),
                            *card_rows,
                            ft.Divider(),
                            ft.Text("Study History", size=20, weight=ft.FontWeight.BOLD),
                            ft.Container(content=ft.Column(history_tiles), width=600),
                        ],
                        spacing=10,
                        scroll=ft.ScrollMode.AUTO,
                        horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                    ),
                    padding=30,
                    expand=True,
                    bgcolor="#f9fafb",
                )
            ],
            bgcolor="#f9fafb",
        )

    def get_summary_view():
        result = service.last_result
        deck = service.get_deck(active["deck_id"]) if active["deck_id"] else None
        if result is None:
            return get_home_view()

        def row(label, value, color):
            return ft.Container(
                content=ft.Row(
                    [ft.Text(label, weight=ft.FontWeight.BOLD), ft.Text(value, weight=ft.FontWeight.BOLD, color=color)],
                    alignment=ft.MainAxisAlignment.SPACE_BETWEEN,
                ),
                bgcolor="#f3f4f6",
                padding=12,
                border_radius=8,
                width=400,
            )

        def back_home(e):
            active["deck_id"] = None
            page.go("/")

        return ft.View(
            "/summary",
            [
                ft.Container(
                    content=ft.Column(
                        [
                            ft.Icon(ft.Icons.CELEBRATION if result.completed else ft.Icons.FLAG, size=72, color="#10b981"),
                            ft.Text("Deck Completed! 🎉" if result.completed else "Session Finished",
                                    size=28, weight=ft.FontWeight.BOLD, color="#6366f1"),
                            ft.Text(f'Results for "{deck.title}"' if deck else "", size=16, color="#6b7280"),
                            ft.Container(height=10),
                            row("Correct Answers:", f"✅ {result.known}", ft.Colors.GREEN_600),
                            row("Incorrect Answers:", f"❌ {result.unknown}", ft.Colors.RED_400),
                            row("Accuracy:", f"{result.accuracy}%", "#10b981"),
                            ft.Container(height=20),
                            ft.ElevatedButton(
                                "Back to Dashboard",
                                icon=ft.Icons.HOME,
                                style=ft.ButtonStyle(
                                    bgcolor="#6366f1",
                                    color="#ffffff",
                                    padding=16,
                                    shape=ft.RoundedRectangleBorder(radius=10),
                                ),
                                on_click=back_home,
                            ),
                        ],
                        alignment=ft.MainAxisAlignment.CENTER,
                        horizontal_alignment=ft.CrossAxisAlignment.CENTER,
                    ),
                    alignment=ft.alignment.center,
                    expand=True,
                    bgcolor="#f9fafb",
                )
            ],
            bgcolor="#f9fafb",
        )

    def route_change(route):
        page.views.clear()
        if page.route == "/study":
            page.views.append(get_study_view())
        elif page.route == "/summary":
            page.views.append(get_summary_view())
        elif page.route.startswith("/deck/"):
            page.views.append(get_deck_view(page.route[len("/deck/"):]))
        else:
            page.views.append(get_home_view())
        page.update()

    page.on_route_change = route_change

    logging.info("Starting MemoDeck desktop app")
    page.go(page.route)


if __name__ == "__main__":
    ft.app(target=main)
