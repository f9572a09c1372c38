import logging
import tkinter as tk
from tkinter import ttk, messagebox

from core import (
    AGE_FIELDS,
    DEFAULT_INPUTS,
    DOLLAR_FIELDS,
    INPUT_FIELDS,
    PERCENT_FIELDS,
    InvalidConfiguration,
    build_config,
    clamp_ages,
    load_config,
    project,
    save_config,
)
from report import (
    TABLE_COLUMNS,
    chart_series,
    explain,
    format_currency,
    summary,
    table_rows,
    toggle_label,
)


logger = logging.getLogger(__name__)


class ToolTip:
    """Simple hover tooltip for a widget."""

    def __init__(self, widget, text: str):
        self.widget = widget
        self.text = text
        self.tipwindow = None
        widget.bind("<Enter>", self._show)
        widget.bind("<Leave>", self._hide)

    def _show(self, _event=None):
        if self.tipwindow or not self.text:
            return
        x = self.widget.winfo_rootx() + 20
        y = self.widget.winfo_rooty() + self.widget.winfo_height() + 10
        self.tipwindow = tw = tk.Toplevel(self.widget)
        tw.wm_overrideredirect(True)
        tw.wm_geometry(f"+{x}+{y}")
        tk.Label(
            tw,
            text=self.text,
            justify=tk.LEFT,
            background="#ffffe0",
            relief=tk.SOLID,
            borderwidth=1,
            font=("tahoma", "8", "normal"),
        ).pack(ipadx=1)

    def _hide(self, _event=None):
        tw = self.tipwindow
        self.tipwindow = None
        if tw is not None:
            tw.destroy()


LABEL_OVERRIDES = {
    "retirement_cola": "Retirement COLA",
    "pre_return": "Return Before Retirement",
    "post_return": "Return After Retirement",
    "social_security_start_age": "Social Security Start Age",
    "social_security_benefit": "Social Security Benefit",
}

ENTRY_HELP = {
    "current_age": "Your age today.",
    "retirement_age": "Age at which contributions stop and withdrawals begin.",
    "life_expectancy": "Last age included in the projection.",
    "current_savings": "Investable savings today.",
    "annual_contribution": "Yearly amount added before retirement.",
    "contribution_growth": "Yearly raise applied to contributions (percentage).",
    "pre_return": "Expected annual return before retirement (percentage).",
    "post_return": "Expected annual return in retirement (percentage).",
    "inflation": "Expected average annual inflation rate (percentage).",
    "tax_rate": "Flat effective tax rate on withdrawals (percentage).",
    "retirement_spend": "Yearly retirement spending in today's dollars.",
    "retirement_cola": "Extra yearly spending increase from retirement onward (percentage).",
    "social_security_start_age": "Age benefits begin. Leave blank to start at retirement.",
    "social_security_benefit": "Yearly benefit in today's dollars.",
}

SUMMARY_LABELS = ("balance_at_retirement", "years_funded", "ending_balance")


def _label(key: str) -> str:
    return LABEL_OVERRIDES.get(key, key.replace("_", " ").title())


def _display(key: str, val) -> str:
    if key in PERCENT_FIELDS:
        return f"{val * 100:g}%"
    if key in DOLLAR_FIELDS:
        return f"${val:,.0f}"
    return str(val)


def _raw_inputs() -> dict:
    return {key: entries[key].get() for key in INPUT_FIELDS}


def _set_entry(key: str, text: str) -> None:
    ent = entries[key]
    ent.delete(0, tk.END)
    ent.insert(0, text)


def render():
    """Recompute the projection from the current inputs and refresh every view."""
    try:
        cfg = build_config(_raw_inputs())
    except InvalidConfiguration as exc:
        logger.debug("Skipping projection: %s", exc)
        status_var.set(str(exc))
        return
    if cfg is None:
        status_var.set("Enter current age, retirement age and life expectancy.")
        return
    status_var.set("")

    result = project(cfg)
    texts = summary(result, summary_mode.get())
    summary_title_vars["balance_at_retirement"].set(texts["balance_at_retirement_label"])
    summary_title_vars["ending_balance"].set(texts["ending_balance_label"])
    for key in SUMMARY_LABELS:
        summary_vars[key].set(texts[key])

    table.delete(*table.get_children())
    for row in table_rows(result, show_all=show_all_rows.get()):
        table.insert("", tk.END, values=row)
    toggle_button.config(text=toggle_label(show_all_rows.get()))

    draw_charts(result)


def draw_charts(result):
    """Redraw the balance and cash-flow charts on the embedded figure."""
    from matplotlib.ticker import FuncFormatter

    series = chart_series(result)
    money = FuncFormatter(lambda value, _pos: format_currency(value))

    balance_ax.clear()
    balance_ax.plot(series["ages"], series["nominal"], color="#1b6ca8", label="Nominal balance")
    balance_ax.fill_between(series["ages"], series["nominal"], color="#1b6ca8", alpha=0.2)
    balance_ax.plot(series["ages"], series["real"], color="#d98324", label="Real balance")
    balance_ax.fill_between(series["ages"], series["real"], color="#d98324", alpha=0.2)
    balance_ax.yaxis.set_major_formatter(money)
    balance_ax.set_title("Balance")
    balance_ax.legend(loc="lower center", ncol=2, fontsize="small")

    cashflow_ax.clear()
    cashflow_ax.bar(series["ages"], series["contributions"], color="#007e69", alpha=0.6, label="Contributions")
    cashflow_ax.bar(series["ages"], series["withdrawals"], color="#d55e00", alpha=0.7, label="Withdrawals")
    cashflow_ax.bar(series["ages"], series["social_security"], color="#56b4e9", alpha=0.65, label="Social Security")
    cashflow_ax.yaxis.set_major_formatter(money)
    cashflow_ax.set_xlabel("Age")
    cashflow_ax.set_title("Cash flow")
    cashflow_ax.legend(loc="lower center", ncol=3, fontsize="small")

    canvas.draw_idle()


def on_input(_event=None):
    save_config(inputs=_raw_inputs())
    render()


def on_age_blur(_event=None):
    raw = _raw_inputs()
    clamped = clamp_ages(raw)
    for key in AGE_FIELDS:
        if clamped.get(key) != raw.get(key):
            _set_entry(key, clamped[key])
    save_config(inputs=clamped)
    render()


def toggle_rows():
    show_all_rows.set(not show_all_rows.get())
    render()


def set_summary_mode():
    save_config(summary_mode=summary_mode.get())
    render()


def explain_calculations():
    """Show a detailed explanation of the current configuration."""
    try:
        cfg = build_config(_raw_inputs())
    except InvalidConfiguration as exc:
        messagebox.showerror("Input error", str(exc))
        return
    if cfg is None:
        messagebox.showerror("Input error", "Ages are required.")
        return
    messagebox.showinfo("Projection Details", explain(cfg))


def load_defaults():
    for key, default in DEFAULT_INPUTS.items():
        _set_entry(key, _display(key, default))
    on_input()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    import matplotlib
    matplotlib.use("TkAgg")
    from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg
    from matplotlib.figure import Figure

    root = tk.Tk()
    root.title("Retirement Savings Projector")
    root.geometry("1280x900")

    entries = {}
    config = load_config()
    saved_inputs = config.get("inputs", {})

    left = ttk.Frame(root)
    left.pack(side="left", fill="y", padx=10, pady=5)
    right = ttk.Frame(root)
    right.pack(side="left", fill="both", expand=True, padx=10, pady=5)

    label_width = max(len(_label(k)) for k in INPUT_FIELDS)
    inputs_frame = ttk.LabelFrame(left, text="Assumptions")
    inputs_frame.pack(fill="x", pady=5)
    for key in INPUT_FIELDS:
        row = ttk.Frame(inputs_frame)
        row.pack(fill="x", pady=2)
        ttk.Label(row, text=_label(key), width=label_width, anchor="w").pack(side="left")
        ent = ttk.Entry(row, width=14)
        ent.insert(0, saved_inputs.get(key, _display(key, DEFAULT_INPUTS[key])))
        ent.pack(side="left", fill="x", expand=True)
        ent.bind("<KeyRelease>", on_input)
        if key in AGE_FIELDS:
            ent.bind("<FocusOut>", on_age_blur)
        entries[key] = ent
        ToolTip(ent, ENTRY_HELP.get(key, ""))

    button_frame = ttk.Frame(left)
    button_frame.pack(fill="x", pady=5)
    ttk.Button(button_frame, text="Explain Calculations", command=explain_calculations).pack()
    ttk.Button(button_frame, text="Load Defaults", command=load_defaults).pack()

    summary_frame = ttk.LabelFrame(left, text="Summary")
    summary_frame.pack(fill="x", pady=5)
    summary_mode = tk.StringVar(value=config.get("summary_mode", "nominal"))
    mode_row = ttk.Frame(summary_frame)
    mode_row.pack(anchor="w")
    for mode in ("nominal", "real"):
        ttk.Radiobutton(
            mode_row,
            text=mode.title(),
            variable=summary_mode,
            value=mode,
            command=set_summary_mode,
        ).pack(side="left")
    summary_vars = {key: tk.StringVar() for key in SUMMARY_LABELS}
    summary_title_vars = {
        "balance_at_retirement": tk.StringVar(value="Balance at retirement"),
        "years_funded": tk.StringVar(value="Years funded"),
        "ending_balance": tk.StringVar(value="Ending balance"),
    }
    for key in SUMMARY_LABELS:
        row = ttk.Frame(summary_frame)
        row.pack(fill="x")
        ttk.Label(row, textvariable=summary_title_vars[key], width=label_width, anchor="w").pack(side="left")
        ttk.Label(row, textvariable=summary_vars[key]).pack(side="left")
    status_var = tk.StringVar()
    ttk.Label(left, textvariable=status_var, foreground="#b00020", wraplength=320).pack(anchor="w")

    figure = Figure(figsize=(8, 5), dpi=100)
    balance_ax = figure.add_subplot(2, 1, 1)
    cashflow_ax = figure.add_subplot(2, 1, 2)
    figure.tight_layout(pad=2.0)
    canvas = FigureCanvasTkAgg(figure, master=right)
    canvas.get_tk_widget().pack(fill="both", expand=True)

    table_frame = ttk.LabelFrame(right, text="Year-by-year breakdown")
    table_frame.pack(fill="both", expand=True, pady=5)
    table = ttk.Treeview(table_frame, columns=TABLE_COLUMNS, show="headings", height=12)
    for col in TABLE_COLUMNS:
        table.heading(col, text=col)
        table.column(col, width=95, anchor="e")
    scroll = ttk.Scrollbar(table_frame, orient="vertical", command=table.yview)
    table.configure(yscrollcommand=scroll.set)
    table.pack(side="left", fill="both", expand=True)
    scroll.pack(side="left", fill="y")
    show_all_rows = tk.BooleanVar(value=False)
    toggle_button = ttk.Button(right, text=toggle_label(False), command=toggle_rows)
    toggle_button.pack(anchor="e")

    render()
    root.mainloop()
