# engramui

A companion tool for engram persistent memory. It installs skills for
Claude Code and OpenCode, registers itself to start at login, talks to
engram's REST API and provides rendering helpers for displaying
observations.

## Installation

```
pip install .
```

## Command line

The `engram-ui` command returns exit code `0` on success, `1` when an
operation fails and `2` on a usage error (unknown subcommand, bad flag,
missing or unknown skill).

Print help (running `engram-ui` with no arguments also prints help):

```
engram-ui help
```

Print the version:

```
engram-ui version
```

### Skills

List the available skills, as `name — description` lines or as a JSON array:

```
engram-ui list
engram-ui list --json
```

Install or remove a skill for one or both tools. `--tool` takes `claude`,
`opencode` or `both` (the default). Claude Code skills go to
`~/.claude/skills/<name>`; OpenCode skills go to
`$XDG_CONFIG_HOME/opencode/skills/<name>`, or `~/.config/opencode/skills/<name>`
when `XDG_CONFIG_HOME` is unset.

```
engram-ui setup brainstorm --tool=claude
engram-ui remove brainstorm
```

Skills are read from a `skills` directory next to the package's modules
(`engramui/skills/<name>/claude/SKILL.md` and
`engramui/skills/<name>/opencode/`). A skill is listed only when its
`claude/SKILL.md` exists and its YAML frontmatter has a `name`. The package
itself ships no skills: until such a directory is provided, `list` and
`setup` report that the skills root cannot be read.

### Autostart

The reserved name `autostart` registers or unregisters the program with the
operating system; `--tool` is ignored for it.

```
engram-ui setup autostart
engram-ui remove autostart
```

Setup first copies the running program to a stable location
(`~/.local/bin/engram-ui` on Linux,
`~/Library/Application Support/engram-ui/engram-ui` on macOS,
`%LOCALAPPDATA%\engram-ui\engram-ui.exe` on Windows), refusing to replace a
newer installed version, and then writes a systemd user unit, a LaunchAgent
plist or a Startup-folder batch file that runs `engram-ui serve`.

### serve

```
engram-ui serve --engram=http://localhost:7437 --listen=:7438
```

If another instance already answers `/healthz` on the listen address, the
command exits with `0`. Otherwise it waits for engram to answer `/health`,
starting `engram serve` when it cannot be reached (unless `--no-spawn` is
given), then listens until interrupted and stops any engram it started.
Arguments that begin with `-` and no subcommand are treated as `serve` flags.

## What this package does not do

- `serve` answers only the `/healthz` liveness probe; every other path returns
  404. There are no web pages for browsing observations.
- There is no interactive installer screen; running `engram-ui` with no
  arguments, or with `--no-tui`, prints help.

## Library use

- `engramui.client.EngramClient` — `health()`, `stats()`, `search()`,
  `observation()` and `recent_observations()` over engram's REST API,
  returning `Stats`, `Observation` and `SearchResult` dataclasses and raising
  `EngramClientError` on failure.
- `engramui.render` — `markdown()` (GFM-style Markdown to HTML with raw HTML
  escaped), `time_ago()`, `time_ago_now()`, `format_datetime()`,
  `format_date()` and `truncate()`.
- `engramui.catalog.load_catalog()` and `parse_frontmatter()`.
- `engramui.skills`, `engramui.autostart`, `engramui.stable_binary`,
  `engramui.paths` and `engramui.unitgen` for the install operations above.
- `engramui.taxonomy.CANONICAL_TYPES` — the observation type names in
  display order.

## Tests

```
pip install .[test]
pytest
```