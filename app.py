from __future__ import annotations

import logging
import textwrap
import threading
import tkinter as tk
import webbrowser
from tkinter import font as tkfont
from tkinter import messagebox, ttk
from typing import Any, Callable, Dict, List, Optional, Tuple

from api import StoreError
from catalog import CatalogSynchronizer
from config import APP_NAME, Settings, build_store, configure_logging, load_settings
from media import fetch_and_cache_image, load_photo
from models import CATEGORIES, Book, Session
from render import Block, image_urls, render_markdown
from storage import LocalState
from views import EditorView, LoginView, Navigator, ReaderView

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Markdown display
# --------------------------------------------------------------------------- #
class MarkdownText(tk.Text):
    """Read-only Text widget that lays out rendered markdown blocks."""

    HEADING_SIZES = {1: 22, 2: 18, 3: 15, 4: 13, 5: 12, 6: 12}

    def __init__(self, master: tk.Misc, **kwargs: Any):
        kwargs.setdefault("wrap", "word")
        kwargs.setdefault("relief", "flat")
        kwargs.setdefault("padx", 16)
        kwargs.setdefault("pady", 12)
        super().__init__(master, **kwargs)
        text_font = tkfont.nametofont("TkTextFont")
        fixed_font = tkfont.nametofont("TkFixedFont")
        self.base_family = text_font.actual("family")
        self.base_size = int(text_font.actual("size")) or 11
        self.fixed_family = fixed_font.actual("family")
        self._fonts: Dict[str, tkfont.Font] = {}
        self._link_count = 0
        self._generation = 0
        self.pending_images: List[Tuple[str, str]] = []
        self.photos: List[Any] = []

        self.tag_configure(
            "code_block",
            background="#1e293b",
            foreground="#e2e8f0",
            lmargin1=16,
            lmargin2=16,
            spacing1=4,
            spacing3=4,
        )
        self.tag_configure("quote", lmargin1=28, lmargin2=28, foreground="#475569")
        self.tag_configure("rule", foreground="#cbd5e1", justify="center")
        self.tag_configure("link", foreground="#4f46e5", underline=True)
        self.tag_configure("image_alt", foreground="#94a3b8")
        self.configure(state="disabled")

    def _font_tag(self, styles: Tuple[str, ...], level: int = 0) -> str:
        bold = "bold" in styles or level > 0
        italic = "italic" in styles or "image" in styles
        code = "code" in styles
        name = f"font-{int(bold)}{int(italic)}{int(code)}-{level}"
        if name not in self._fonts:
            size = self.HEADING_SIZES.get(level, self.base_size)
            self._fonts[name] = tkfont.Font(
                family=self.fixed_family if code else self.base_family,
                size=size,
                weight="bold" if bold else "normal",
                slant="italic" if italic else "roman",
            )
            self.tag_configure(name, font=self._fonts[name])
        return name

    def _indent_tag(self, depth: int) -> Tuple[str, ...]:
        if depth <= 0:
            return ()
        name = f"indent-{depth}"
        self.tag_configure(name, lmargin1=depth * 18, lmargin2=depth * 18 + 14)
        return (name,)

    def _link_tag(self, href: str) -> str:
        self._link_count += 1
        name = f"href-{self._link_count}"
        self.tag_bind(name, "<Button-1>", lambda _event, url=href: webbrowser.open(url))
        self.tag_bind(name, "<Enter>", lambda _event: self.configure(cursor="hand2"))
        self.tag_bind(name, "<Leave>", lambda _event: self.configure(cursor=""))
        return name

    def show(self, blocks: List[Block]) -> None:
        self._generation += 1
        self.pending_images = []
        self.photos = []
        self.configure(state="normal")
        self.delete("1.0", "end")
        for item in blocks:
            self._insert_block(item)
        self.configure(state="disabled")

    def _insert_block(self, item: Block) -> None:
        if item.kind == "rule":
            self.insert("end", "―" * 32 + "\n\n", ("rule",))
            return
        base: Tuple[str, ...] = ("quote",) if item.quoted else ()
        base += self._indent_tag(item.depth)
        if item.kind == "code":
            code_font = self._font_tag(("code",))
            self.insert("end", item.text + "\n", base + ("code_block", code_font))
            self.insert("end", "\n")
            return

        level = item.level if item.kind == "heading" else 0
        if item.marker:
            self.insert("end", f"{item.marker} ", base + (self._font_tag((), level),))
        for span in item.spans:
            if "image" in span.styles and span.href:
                mark = f"image-{self._generation}-{len(self.pending_images)}"
                self.mark_set(mark, "end-1c")
                self.mark_gravity(mark, "left")
                self.pending_images.append((mark, span.href))
                self.insert(
                    "end", f"[{span.text or 'image'}]", base + ("image_alt", self._font_tag(span.styles))
                )
                continue
            tags = base + (self._font_tag(span.styles, level),)
            if span.href:
                tags += ("link", self._link_tag(span.href))
            self.insert("end", span.text, tags)
        self.insert("end", "\n" if item.marker else "\n\n")

    def place_image(self, generation: int, mark: str, photo: Any) -> None:
        if generation != self._generation or photo is None:
            return
        self.configure(state="normal")
        try:
            self.image_create(mark, image=photo)
            self.insert(f"{mark}+1c", "\n")
        except tk.TclError:
            return
        finally:
            self.configure(state="disabled")
        self.photos.append(photo)

    @property
    def generation(self) -> int:
        return self._generation


# --------------------------------------------------------------------------- #
# Catalog
# --------------------------------------------------------------------------- #
class CatalogFrame(ttk.Frame):
    def __init__(self, master: tk.Misc, controller: "MainApplication"):
        super().__init__(master, padding=12)
        self.controller = controller
        self.books: List[Book] = []
        self._build_ui()

    def _build_ui(self) -> None:
        top = ttk.Frame(self)
        top.grid(row=0, column=0, sticky="ew")
        top.columnconfigure(1, weight=1)

        ttk.Label(top, text="Digital Library", font=("Helvetica", 16, "bold")).grid(
            row=0, column=0, columnspan=3, sticky="w", pady=(0, 8)
        )
        ttk.Label(top, text="Search articles:").grid(row=1, column=0, sticky="w")
        self.search_var = tk.StringVar()
        ttk.Entry(top, textvariable=self.search_var).grid(
            row=1, column=1, sticky="ew", padx=(4, 0)
        )
        self.search_var.trace_add("write", lambda *_: self.refresh())

        self.refresh_button = ttk.Button(
            top, text="Refresh", command=self.controller.reload_catalog, width=12
        )
        self.refresh_button.grid(row=1, column=2, padx=(8, 0))

        self.loading_label = ttk.Label(top, text="", foreground="#6366f1")
        self.loading_label.grid(row=2, column=0, columnspan=3, sticky="w", pady=(6, 0))

        body = ttk.Frame(self)
        body.grid(row=1, column=0, sticky="nsew", pady=(8, 0))
        body.columnconfigure(0, weight=1)
        body.columnconfigure(1, weight=1)
        body.rowconfigure(0, weight=1)
        self.rowconfigure(1, weight=1)
        self.columnconfigure(0, weight=1)

        columns = ("category", "title", "status")
        self.tree = ttk.Treeview(body, columns=columns, show="headings", selectmode="browse")
        self.tree.heading("category", text="Category")
        self.tree.heading("title", text="Title")
        self.tree.heading("status", text="Status")
        self.tree.column("category", width=110, anchor="w")
        self.tree.column("title", width=360, anchor="w")
        self.tree.column("status", width=90, anchor="center")
        self.tree.grid(row=0, column=0, sticky="nsew")
        self.tree.bind("<<TreeviewSelect>>", lambda _event: self._show_selected())
        self.tree.bind("<Double-1>", lambda _event: self._read_selected())

        tree_scroll = ttk.Scrollbar(body, orient="vertical", command=self.tree.yview)
        tree_scroll.grid(row=0, column=0, sticky="nse")
        self.tree.configure(yscrollcommand=tree_scroll.set)

        detail = ttk.Frame(body, padding=(16, 0))
        detail.grid(row=0, column=1, sticky="nsew")
        detail.columnconfigure(0, weight=1)
        detail.rowconfigure(0, weight=1)

        self.info_text = tk.Text(
            detail,
            height=12,
            wrap="word",
            state="disabled",
            background=self.winfo_toplevel().cget("background"),
            relief="flat",
        )
        self.info_text.grid(row=0, column=0, sticky="nsew")

        button_frame = ttk.Frame(detail)
        button_frame.grid(row=1, column=0, sticky="ew", pady=(12, 0))

        self.read_button = ttk.Button(
            button_frame, text="Start reading", command=self._read_selected, state="disabled"
        )
        self.read_button.grid(row=0, column=0, padx=(0, 6))

        self.admin_buttons = ttk.Frame(button_frame)
        self.admin_buttons.grid(row=0, column=1, sticky="w")
        self.edit_button = ttk.Button(
            self.admin_buttons, text="Edit", command=self._edit_selected, state="disabled"
        )
        self.edit_button.grid(row=0, column=0, padx=(0, 6))
        self.visibility_button = ttk.Button(
            self.admin_buttons, text="Hide", command=self._toggle_selected, state="disabled"
        )
        self.visibility_button.grid(row=0, column=1, padx=(0, 6))
        self.delete_button = ttk.Button(
            self.admin_buttons, text="Delete", command=self._delete_selected, state="disabled"
        )
        self.delete_button.grid(row=0, column=2)

    # ------------------------------------------------------------------
    def refresh(self) -> None:
        sync = self.controller.sync
        authenticated = self.controller.authenticated
        self.loading_label.configure(text="Loading catalog…" if sync.loading else "")
        self.refresh_button.state(["disabled"] if sync.loading else ["!disabled"])
        self.books = sync.visible_books(self.search_var.get(), authenticated)

        if authenticated:
            self.admin_buttons.grid()
        else:
            self.admin_buttons.grid_remove()

        selection = self.tree.selection()
        selected_id = selection[0] if selection else None

        self.tree.delete(*self.tree.get_children())
        for book in self.books:
            if book.is_local:
                status = "Sample"
            elif book.is_hidden:
                status = "Hidden"
            else:
                status = "Public"
            self.tree.insert(
                "",
                "end",
                iid=book.id,
                values=(book.category.value, textwrap.shorten(book.title, 70, placeholder="…"), status),
            )

        if not self.books and not sync.loading:
            self._show_book(None, empty=True)
        elif selected_id and self.tree.exists(selected_id):
            self.tree.selection_set(selected_id)
            self.tree.focus(selected_id)
            self._show_selected()
        else:
            self._show_book(None)

    def _selected_book(self) -> Optional[Book]:
        selection = self.tree.selection()
        if not selection:
            return None
        return next((book for book in self.books if book.id == selection[0]), None)

    def _show_selected(self) -> None:
        self._show_book(self._selected_book())

    def _show_book(self, book: Optional[Book], empty: bool = False) -> None:
        self.info_text.configure(state="normal")
        self.info_text.delete("1.0", "end")
        for button in (self.read_button, self.edit_button, self.visibility_button, self.delete_button):
            button.configure(state="disabled")

        if not book:
            message = "No articles found." if empty else "Select an article to see its summary."
            self.info_text.insert("end", message)
            self.info_text.configure(state="disabled")
            return

        lines = [book.category.value.upper(), "", book.title, "", book.description or "—"]
        if book.is_local:
            lines += ["", "Built-in sample. Saving an edit publishes it as a new article."]
        elif book.is_hidden:
            lines += ["", "Hidden from visitors."]
        self.info_text.insert("end", "\n".join(lines))
        self.info_text.configure(state="disabled")

        self.read_button.configure(state="normal")
        if self.controller.authenticated:
            self.edit_button.configure(state="normal")
            self.delete_button.configure(state="normal")
            if not book.is_local:
                self.visibility_button.configure(
                    state="normal", text="Show" if book.is_hidden else "Hide"
                )

    def _read_selected(self) -> None:
        book = self._selected_book()
        if book:
            self.controller.open_reader(book)

    def _edit_selected(self) -> None:
        book = self._selected_book()
        if book:
            self.controller.edit_book(book)

    def _toggle_selected(self) -> None:
        book = self._selected_book()
        if book:
            self.controller.toggle_visibility(book)

    def _delete_selected(self) -> None:
        book = self._selected_book()
        if book:
            self.controller.delete_book(book)


# --------------------------------------------------------------------------- #
# Reader
# --------------------------------------------------------------------------- #
class ReaderFrame(ttk.Frame):
    def __init__(self, master: tk.Misc, controller: "MainApplication"):
        super().__init__(master, padding=12)
        self.controller = controller
        self.book: Optional[Book] = None
        self._build_ui()

    def _build_ui(self) -> None:
        nav = ttk.Frame(self)
        nav.grid(row=0, column=0, sticky="ew")
        ttk.Button(nav, text="← Back to catalog", command=self.controller.back_to_catalog).grid(
            row=0, column=0, sticky="w"
        )
        self.edit_button = ttk.Button(nav, text="Edit", command=self._edit)
        self.edit_button.grid(row=0, column=1, padx=(8, 0))

        self.category_label = ttk.Label(self, foreground="#4f46e5")
        self.category_label.grid(row=1, column=0, sticky="w", pady=(12, 0))
        self.title_label = ttk.Label(self, font=("Helvetica", 20, "bold"), wraplength=900)
        self.title_label.grid(row=2, column=0, sticky="w")
        self.description_label = ttk.Label(self, foreground="#64748b", wraplength=900)
        self.description_label.grid(row=3, column=0, sticky="w", pady=(4, 8))

        self.content = MarkdownText(self, background="#ffffff")
        self.content.grid(row=4, column=0, sticky="nsew")
        scroll = ttk.Scrollbar(self, orient="vertical", command=self.content.yview)
        scroll.grid(row=4, column=1, sticky="ns")
        self.content.configure(yscrollcommand=scroll.set)
        self.rowconfigure(4, weight=1)
        self.columnconfigure(0, weight=1)

    def show(self, book: Book) -> None:
        self.book = book
        self.category_label.configure(text=book.category.value.upper())
        self.title_label.configure(text=book.title)
        self.description_label.configure(text=book.description)
        if self.controller.authenticated:
            self.edit_button.grid()
        else:
            self.edit_button.grid_remove()
        blocks = render_markdown(book.content)
        self.content.show(blocks)
        if image_urls(blocks):
            self.controller.load_images(self.content)

    def _edit(self) -> None:
        if self.book:
            self.controller.edit_book(self.book)


# --------------------------------------------------------------------------- #
# Editor
# --------------------------------------------------------------------------- #
class EditorFrame(ttk.Frame):
    def __init__(self, master: tk.Misc, controller: "MainApplication"):
        super().__init__(master, padding=12)
        self.controller = controller
        self._preview_job: Optional[str] = None
        self._build_ui()

    def _build_ui(self) -> None:
        header = ttk.Frame(self)
        header.grid(row=0, column=0, columnspan=2, sticky="ew")
        header.columnconfigure(0, weight=1)
        self.heading_label = ttk.Label(header, font=("Helvetica", 16, "bold"))
        self.heading_label.grid(row=0, column=0, sticky="w")
        ttk.Button(header, text="Cancel", command=self.controller.cancel_edit).grid(
            row=0, column=1, sticky="e"
        )

        form = ttk.Frame(self)
        form.grid(row=1, column=0, sticky="nsew", pady=(12, 0))
        form.columnconfigure(0, weight=1)

        ttk.Label(form, text="Title").grid(row=0, column=0, sticky="w")
        self.title_var = tk.StringVar()
        ttk.Entry(form, textvariable=self.title_var).grid(row=1, column=0, sticky="ew", pady=(2, 8))

        ttk.Label(form, text="Category").grid(row=2, column=0, sticky="w")
        self.category_var = tk.StringVar(value=CATEGORIES[-1])
        ttk.Combobox(
            form, textvariable=self.category_var, values=CATEGORIES, state="readonly"
        ).grid(row=3, column=0, sticky="ew", pady=(2, 8))

        ttk.Label(form, text="Short description").grid(row=4, column=0, sticky="w")
        self.description_text = tk.Text(form, height=3, wrap="word")
        self.description_text.grid(row=5, column=0, sticky="ew", pady=(2, 8))

        ttk.Label(form, text="Content (Markdown)").grid(row=6, column=0, sticky="w")
        self.content_text = tk.Text(form, height=16, wrap="word", undo=True)
        self.content_text.grid(row=7, column=0, sticky="nsew", pady=(2, 8))
        form.rowconfigure(7, weight=1)

        self.save_button = ttk.Button(form, command=self.controller.save_draft)
        self.save_button.grid(row=8, column=0, sticky="ew")

        preview_frame = ttk.LabelFrame(self, text="Live preview", padding=8)
        preview_frame.grid(row=1, column=1, sticky="nsew", padx=(16, 0), pady=(12, 0))
        preview_frame.rowconfigure(0, weight=1)
        preview_frame.columnconfigure(0, weight=1)
        self.preview = MarkdownText(preview_frame, background="#eef2ff")
        self.preview.grid(row=0, column=0, sticky="nsew")

        self.rowconfigure(1, weight=1)
        self.columnconfigure(0, weight=1)
        self.columnconfigure(1, weight=1)

        self.title_var.trace_add("write", lambda *_: self._schedule_preview())
        for widget in (self.description_text, self.content_text):
            widget.bind("<KeyRelease>", lambda _event: self._schedule_preview())

    def load(self, view: EditorView) -> None:
        draft = view.draft
        self.heading_label.configure(text="Update article" if view.is_editing else "New article")
        self.save_button.configure(
            text="Save changes" if view.is_editing else "Publish now", state="normal"
        )
        self.title_var.set(draft.title)
        self.category_var.set(draft.category)
        self.description_text.delete("1.0", "end")
        self.description_text.insert("1.0", draft.description)
        self.content_text.delete("1.0", "end")
        self.content_text.insert("1.0", draft.content)
        self._update_preview()

    def read_form(self) -> Dict[str, str]:
        return {
            "title": self.title_var.get().strip(),
            "category": self.category_var.get(),
            "description": self.description_text.get("1.0", "end-1c").strip(),
            "content": self.content_text.get("1.0", "end-1c"),
        }

    def set_busy(self, busy: bool) -> None:
        self.save_button.configure(state="disabled" if busy else "normal")

    def _schedule_preview(self) -> None:
        if self._preview_job is not None:
            self.after_cancel(self._preview_job)
        self._preview_job = self.after(300, self._update_preview)

    def _update_preview(self) -> None:
        self._preview_job = None
        form = self.read_form()
        header = f"# {form['title'] or 'Article title'}\n\n*{form['description'] or 'Description…'}*\n\n"
        body = form["content"] or "_The content preview appears here…_"
        self.preview.show(render_markdown(header + body))


# --------------------------------------------------------------------------- #
# Login
# --------------------------------------------------------------------------- #
class LoginFrame(ttk.Frame):
    def __init__(self, master: tk.Misc, controller: "MainApplication"):
        super().__init__(master, padding=48)
        self.controller = controller
        self._build_ui()

    def _build_ui(self) -> None:
        box = ttk.Frame(self)
        box.place(relx=0.5, rely=0.3, anchor="n")

        ttk.Label(box, text="Admin login", font=("Helvetica", 18, "bold")).grid(
            row=0, column=0, columnspan=2, pady=(0, 4)
        )
        self.hint_label = ttk.Label(box, foreground="#64748b")
        self.hint_label.grid(row=1, column=0, columnspan=2, pady=(0, 16))

        ttk.Label(box, text="Email").grid(row=2, column=0, sticky="w", pady=2)
        self.email_var = tk.StringVar()
        self.email_entry = ttk.Entry(box, textvariable=self.email_var, width=36)
        self.email_entry.grid(row=2, column=1, sticky="ew", padx=(8, 0), pady=2)

        ttk.Label(box, text="Password").grid(row=3, column=0, sticky="w", pady=2)
        self.password_var = tk.StringVar()
        password_entry = ttk.Entry(box, textvariable=self.password_var, show="•", width=36)
        password_entry.grid(row=3, column=1, sticky="ew", padx=(8, 0), pady=2)
        password_entry.bind("<Return>", lambda _event: self._submit())

        self.submit_button = ttk.Button(box, text="Sign in", command=self._submit)
        self.submit_button.grid(row=4, column=0, columnspan=2, sticky="ew", pady=(16, 0))
        ttk.Button(box, text="Back to catalog", command=self.controller.back_to_catalog).grid(
            row=5, column=0, columnspan=2, sticky="ew", pady=(6, 0)
        )

    def reset(self, hint: str) -> None:
        self.password_var.set("")
        self.hint_label.configure(text=hint)
        self.submit_button.configure(state="normal")
        self.email_entry.focus_set()

    def set_busy(self, busy: bool) -> None:
        self.submit_button.configure(state="disabled" if busy else "normal")

    def _submit(self) -> None:
        self.controller.sign_in(self.email_var.get().strip(), self.password_var.get())


# --------------------------------------------------------------------------- #
# Main application
# --------------------------------------------------------------------------- #
class MainApplication(tk.Tk):
    def __init__(self, settings: Optional[Settings] = None):
        super().__init__()
        self.settings = settings or load_settings()
        self.title(f"{APP_NAME} - Digital Library")
        self.geometry("1280x820")
        self.minsize(1000, 680)

        self.local_state = LocalState(self.settings.db_path)
        self.store = build_store(self.settings, self.local_state)
        self.session: Optional[Session] = None
        self.sync = CatalogSynchronizer(self.store, on_change=self._catalog_changed)
        self.navigator = Navigator(lambda: self.session is not None)
        self._unsubscribe: Optional[Callable[[], None]] = None
        if self.store is not None:
            self._unsubscribe = self.store.on_auth_state_change(self._on_auth_event)

        self.status_var = tk.StringVar(value="Ready.")
        self._build_ui()
        self._bootstrap()

    def _build_ui(self) -> None:
        header = ttk.Frame(self, padding=(12, 8))
        header.pack(side="top", fill="x")
        header.columnconfigure(1, weight=1)

        brand = ttk.Label(header, text=APP_NAME, font=("Helvetica", 16, "bold"), cursor="hand2")
        brand.grid(row=0, column=0, sticky="w")
        brand.bind("<Button-1>", lambda _event: self.back_to_catalog())

        self.user_label = ttk.Label(header, foreground="#64748b")
        self.user_label.grid(row=0, column=2, padx=(0, 12))
        self.new_button = ttk.Button(header, text="+ New article", command=self.new_book)
        self.new_button.grid(row=0, column=3, padx=(0, 8))
        self.auth_button = ttk.Button(header, command=self._auth_clicked)
        self.auth_button.grid(row=0, column=4)

        status_bar = ttk.Label(self, textvariable=self.status_var, anchor="w", padding=(8, 4))
        status_bar.pack(side="bottom", fill="x")

        container = ttk.Frame(self)
        container.pack(fill="both", expand=True)
        container.rowconfigure(0, weight=1)
        container.columnconfigure(0, weight=1)

        self.catalog_frame = CatalogFrame(container, self)
        self.reader_frame = ReaderFrame(container, self)
        self.editor_frame = EditorFrame(container, self)
        self.login_frame = LoginFrame(container, self)
        for frame in (self.catalog_frame, self.reader_frame, self.editor_frame, self.login_frame):
            frame.grid(row=0, column=0, sticky="nsew")

        self.protocol("WM_DELETE_WINDOW", self.on_close)
        self.show_view()

    # ------------------------------------------------------------------
    @property
    def authenticated(self) -> bool:
        return self.session is not None

    def set_status(self, message: str) -> None:
        self.status_var.set(message)

    def run_background(
        self,
        work: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        def worker() -> None:
            try:
                result = work()
            except Exception as error:
                logger.debug("Background task failed", exc_info=True)
                handler = on_error or self._show_error
                self.after(0, lambda failure=error: handler(failure))
                return
            self.after(0, lambda: on_success(result))

        threading.Thread(target=worker, daemon=True).start()

    def _show_error(self, error: Exception) -> None:
        self.set_status("Something went wrong.")
        messagebox.showerror("Error", str(error), parent=self)

    def _catalog_changed(self) -> None:
        if threading.current_thread() is threading.main_thread():
            self.catalog_frame.refresh()
        else:
            self.after(0, self.catalog_frame.refresh)

    def _on_auth_event(self, event: str, session: Optional[Session]) -> None:
        logger.debug("Auth event %s", event)
        self.after(0, lambda: self._apply_session(session))

    def _apply_session(self, session: Optional[Session]) -> None:
        self.session = session
        # Sign-in and sign-out move between views themselves once their work is done.
        if self.navigator.session_ended():
            self.show_view()
            return
        self._update_header()
        self.catalog_frame.refresh()

    def _update_header(self) -> None:
        if self.session is not None:
            self.user_label.configure(text=self.session.user.email)
            self.new_button.grid()
            self.auth_button.configure(text="Log out")
        else:
            self.user_label.configure(text="")
            self.new_button.grid_remove()
            self.auth_button.configure(text="Admin login")

    def show_view(self) -> None:
        state = self.navigator.state
        if isinstance(state, ReaderView):
            self.reader_frame.show(state.book)
            self.reader_frame.tkraise()
        elif isinstance(state, EditorView):
            self.editor_frame.load(state)
            self.editor_frame.tkraise()
        elif isinstance(state, LoginView):
            if self.store is None:
                hint = "Sign-in needs a configured backend."
            elif self.settings.storage == "local":
                hint = "Local mode: any email and password will do."
            else:
                hint = "Sign in to manage LiteBooks."
            self.login_frame.reset(hint)
            self.login_frame.tkraise()
        else:
            self.catalog_frame.refresh()
            self.catalog_frame.tkraise()
        self._update_header()

    def _bootstrap(self) -> None:
        def work() -> Optional[Session]:
            session = self.store.get_session() if self.store is not None else None
            self.session = session
            self.sync.fetch_catalog()
            return session

        self.set_status("Loading catalog…")
        self.run_background(work, self._on_catalog_loaded)

    def _on_catalog_loaded(self, _result: Any = None) -> None:
        self._update_header()
        self.catalog_frame.refresh()
        if not self.sync.configured:
            self.set_status("Backend not configured; showing sample articles.")
        elif self.sync.last_error:
            self.set_status(f"Could not load the catalog: {self.sync.last_error}")
        else:
            self.set_status(f"{len(self.sync.books)} articles loaded.")

    def reload_catalog(self) -> None:
        self.set_status("Loading catalog…")
        self.run_background(self.sync.fetch_catalog, self._on_catalog_loaded)

    def load_images(self, widget: MarkdownText) -> None:
        generation = widget.generation
        cache_dir = self.settings.data_dir / "images"
        for mark, url in list(widget.pending_images):

            def work(url: str = url) -> Any:
                return fetch_and_cache_image(url, cache_dir, timeout=self.settings.timeout)

            def done(path: Any, mark: str = mark) -> None:
                photo = load_photo(path, (720, 480)) if path else None
                widget.place_image(generation, mark, photo)

            self.run_background(work, done, on_error=lambda error: logger.warning("%s", error))

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def back_to_catalog(self) -> None:
        self.navigator.back_to_catalog()
        self.show_view()

    def open_reader(self, book: Book) -> None:
        if self.navigator.open_reader(book):
            self.show_view()

    def new_book(self) -> None:
        self.navigator.back_to_catalog()
        if self.navigator.open_create():
            self.show_view()

    def edit_book(self, book: Book) -> None:
        if self.navigator.open_edit(book):
            self.show_view()

    def cancel_edit(self) -> None:
        if self.navigator.cancel():
            self.set_status("Draft discarded.")
            self.show_view()

    def _auth_clicked(self) -> None:
        if self.authenticated:
            self.sign_out()
        elif self.navigator.open_login():
            self.show_view()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def sign_in(self, email: str, password: str) -> None:
        if self.store is None:
            messagebox.showerror("Login failed", "No backend is configured.", parent=self)
            return
        self.login_frame.set_busy(True)
        store = self.store

        def work() -> Session:
            session = store.sign_in(email, password)
            self.session = session
            self.sync.fetch_catalog()
            return session

        def done(session: Session) -> None:
            self.session = session
            self.navigator.signed_in()
            self.set_status(f"Signed in as {session.user.email}.")
            self.show_view()

        def failed(error: Exception) -> None:
            self.login_frame.set_busy(False)
            messagebox.showerror("Login failed", str(error), parent=self)

        self.run_background(work, done, failed)

    def sign_out(self) -> None:
        store = self.store

        def work() -> None:
            if store is not None:
                store.sign_out()
            self.session = None
            self.sync.fetch_catalog()

        def done(_result: Any) -> None:
            self.session = None
            self.navigator.logged_out()
            self.set_status("Signed out.")
            self.show_view()

        self.run_background(work, done)

    def save_draft(self) -> None:
        form = self.editor_frame.read_form()
        self.navigator.update_draft(**form)
        state = self.navigator.state
        if not isinstance(state, EditorView):
            return
        if not state.draft.is_complete():
            self.set_status("Title and content are required.")
            return
        if not self.sync.configured:
            self.set_status("Saving needs a configured backend.")
            return

        self.editor_frame.set_busy(True)
        self.set_status("Saving…")

        def done(saved: bool) -> None:
            self.editor_frame.set_busy(False)
            if saved:
                self.set_status(f"Saved '{state.draft.title}'.")
                self.show_view()

        def failed(error: Exception) -> None:
            self.editor_frame.set_busy(False)
            self.set_status("Save failed.")
            messagebox.showerror("Error", str(error), parent=self)

        self.run_background(lambda: self.navigator.save(self.sync), done, failed)

    def delete_book(self, book: Book) -> None:
        if book.is_local:
            self.sync.delete_book(book)
            self.set_status(f"Dismissed sample '{book.title}'.")
            return
        if not messagebox.askyesno(
            "Delete article",
            f"Delete '{book.title}' permanently?",
            parent=self,
        ):
            return
        self.set_status("Deleting…")
        self.run_background(
            lambda: self.sync.delete_book(book),
            lambda _deleted: self.set_status(f"Deleted '{book.title}'."),
        )

    def toggle_visibility(self, book: Book) -> None:
        def done(_changed: bool) -> None:
            current = self.sync.find(book.id)
            if current is not None:
                label = "hidden" if current.is_hidden else "public"
                self.set_status(f"'{book.title}' is now {label}.")

        self.run_background(lambda: self.sync.toggle_visibility(book), done)

    def on_close(self) -> None:
        try:
            if self._unsubscribe is not None:
                self._unsubscribe()
            if self.store is not None:
                self.store.close()
            self.local_state.close()
        except StoreError as error:
            logger.warning("Error while closing: %s", error)
        finally:
            self.destroy()


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    app = MainApplication(settings)
    app.mainloop()


if __name__ == "__main__":
    main()
