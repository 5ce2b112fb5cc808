# groupbot

Building blocks for a group chat bot. Each module holds one feature and does the parsing, the rules and the storage. Sending messages is left to your bot framework.

## Modules

| Module | What it does |
| --- | --- |
| `groupbot.timer` | `Timer` packs a reminder's month, day, weekday, hour and minute into one integer. It works out the next wake-up time (`next_wake_time`) and whether the reminder is due (`should_fire`). `get_filled_timer` builds a timer from the captured parts of a reminder command. |
| `groupbot.clock` | `Clock` stores timers in a SQLite `timer` table and runs each one on a background thread. It calls your `send` callable when a timer fires. `CronSchedule` parses five-field cron expressions and `@daily`-style descriptors. |
| `groupbot.manager` | Helpers for group admins: ban durations (capped just under a month), unescaping of `&#91;`/`&#93;`, welcome text with `{at}` mentions, card and title length checks, the join quiz, and the random "翻牌" pick. `parse_timer_command` and `parse_cancel_command` turn reminder commands into `Timer` objects. |
| `groupbot.manager_store` | `ManagerStore` keeps welcome messages and admitted members in SQLite. It also holds gist-based join verification (`check_new_user`, `parse_gist_answer`) and the option-bit switches. |
| `groupbot.score` | `ScoreDB` and `sign_in` handle the daily sign-in: one cookie per day, a score capped at 120, levels and a greeting for the time of day. |
| `groupbot.sleep` | `SleepDB` records good-morning and good-night messages. It returns each member's rank and the time slept or spent awake, and provides the reply texts. |
| `groupbot.ymgal` | `YmgalDB` stores galgame CG and emoticon picture sets. The module parses the site's pages with lxml, and `update_pictures` collects new sets through a `fetch` callable you supply. `forward_items` builds the message segments. |
| `groupbot.moyu` | The daily "摸鱼人" notice: `Holiday` countdowns, `weekend_text` and `build_notice`. |
| `groupbot.nsfw` | `judge` and `auto_judge` turn classifier scores (`Picture`) into a short verdict. |

## Examples

### Reminders

```python
from datetime import datetime

from groupbot.clock import Clock
from groupbot.timer import get_filled_timer

parts = ["", "12", "每周六", "16", "30", "", "开会啦"]
timer = get_filled_timer(parts, botqq=0, grp=123456, match_date_only=False)
print(timer.info(), timer.next_wake_time(datetime.now()))

def send(self_id, group_id, message):
    print(self_id, group_id, message)

with Clock("config.db", send) as clock:
    clock.register_timer(timer, True)
    print(clock.list_timers(123456))
```

Use `parse_timer_command` from `groupbot.manager` to turn a whole command line into a `Timer`. It handles commands such as `在"0 8 * * *"时提醒大家起床` as well.

### Sign-in scores

```python
from datetime import datetime

from groupbot.score import ScoreDB, sign_in

with ScoreDB("score.db") as db:
    result = sign_in(db, uid=10001, now=datetime.now())
    print(result.score, result.level, result.already_signed)
```

### Sleep tracking

```python
from datetime import datetime

from groupbot.sleep import SleepDB, good_night_reply

with SleepDB("manage.db") as db:
    position, awake = db.sleep(gid=1, uid=2, now=datetime.now())
    print(good_night_reply(position, awake))
```

### Gist join verification

```python
import urllib.request

from groupbot.manager_store import GistError, ManagerStore, check_new_user, parse_gist_answer

def fetch(url):
    with urllib.request.urlopen(url) as resp:
        return resp.read()

with ManagerStore("config.db") as store:
    try:
        ghun, gist_hash = parse_gist_answer("问题：…\n答案：someone/abc123")
        check_new_user(store, qq=10001, gid=123456, ghun=ghun, gist_hash=gist_hash, fetch=fetch)
    except GistError as err:
        print("refused:", err)
```

## What the package does not do

- It does not connect to any chat platform, and it has no command-line program. Your bot has to match incoming messages and send the texts and message segments that these functions return.
- It makes no network requests of its own. `update_pictures` and `check_new_user` take a `fetch` callable, and holidays for `groupbot.moyu` must be supplied in their stored `days_year_month_day` form (`parse_holiday`).
- It draws no images. Sign-in results come back as data, not as a rendered card.

## Tests

The test suite uses pytest, responses and freezegun. They are listed under the `test` extra.