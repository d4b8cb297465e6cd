from pathlib import Path

MAX_DIFF_CHARS = 4000
TRUNCATED_DIFF_LINES = 100

MAX_ATTEMPTS = 3
BASE_RETRY_DELAY_MS = 1000
MAX_RETRY_DELAY_MS = 5000

PROMPT_TIMEOUT_SECONDS = 60.0

DEFAULT_MODEL = "mistral:7b-instruct"
DEFAULT_HOST = "http://localhost:11434"

CONFIG_DIR = Path.home() / ".config" / "ollama-commit"
USER_CONFIG_FILENAME = "config.yaml"
PROJECT_CONFIG_FILENAME = ".ollama-commit.yaml"
DEFAULT_PROMPT_FILE = CONFIG_DIR / "prompt.txt"

PREFERRED_MODELS = (
    "llama3.2:latest",
    "llama3.2:3b",
    "llama3:latest",
    "llama3:8b",
    "codellama:latest",
    "mistral:latest",
    "mistral:7b-instruct",
    "qwen2.5:latest",
    "qwen2.5:7b",
    "deepseek-coder:latest",
    "phi3:latest",
    "gemma2:latest",
)

CLOSING_INSTRUCTION = (
    "Please analyze these changes and create a meaningful commit message "
    "following the format specified above."
)

PROMPT_TEMPLATES = {
    "default": """Write professional, concise commit messages:
- Use a professional, factual tone - no humor, commentary, or unnecessary text
- The first line should be a short summary of the changes
- Group related changes together logically
- Mention the files that were changed and what was modified
- Use bullet points for multiple changes
- If version changes are detected, include the specific version numbers in your message
- **If a 'Version Changes' section is present in the context, you MUST include each line from it verbatim in your commit message**
- If there are no changes or the input is blank, return a blank string

CRITICAL: You must write ONLY the final commit message. Do NOT include any thinking process or <think> tags.

The output format should be:

Summary of changes

- File/component: change description
- File/component: change description

What you write will be passed directly to git commit -m "[message]\"""",
    "conventional": """Generate professional conventional commit messages following the format: type(scope): description

Types: feat, fix, docs, style, refactor, test, chore, perf, ci, build, revert

Rules:
- Use lowercase for type and description
- Keep description under 72 characters
- Add body with bullet points for multiple changes
- Use present tense
- If version changes are detected, include the specific version numbers
- **If a 'Version Changes' section is present in the context, you MUST include each line from it verbatim in your commit message**

Format:
type(scope): short description

- detailed change 1
- detailed change 2

What you write will be passed directly to git commit -m "[message]\"""",
    "simple": """Create simple, clear, professional commit messages:

- Start with a verb (add, fix, update, remove, etc.)
- Mention what files or features were changed
- Keep it concise but informative
- If version changes are detected, include the specific version numbers

Example: "Fix user authentication bug in login component"
Example: "Bump version from 1.0.1 to 1.0.2"

What you write will be passed directly to git commit -m "[message]\"""",
    "detailed": """Generate comprehensive, professional commit messages with full context:

- Start with a clear summary of the changes
- Group related changes by category (documentation, core, CLI, tests, version management)
- List all modified files and their changes within each group
- Explain the technical details of the implementation
- Use bullet points for multiple changes
- If version changes are detected, include the specific version numbers
- **If a 'Version Changes' section is present in the context, you MUST include each line from it verbatim in your commit message**

CRITICAL: You must write ONLY the final commit message. Do NOT include any thinking process or <think> tags.

Format:
Summary of changes

Core functionality:
- src/module.py: Improved error handling

Tests:
- tests/test_module.py: Added new test cases

Version management:
- pyproject.toml: Bumped version from 1.0.1 to 1.0.2

What you write will be passed directly to git commit -m "[message]\"""",
}

CONNECTION_TROUBLESHOOTING = """
🔧 Troubleshooting steps:
    1. Check that Ollama is running:
        - ollama serve
    2. Check configuration:
        - ollama-commit config show
    3. Test connection:
        - ollama-commit test connection
    4. Verify host URL format:
        - http://localhost:11434 (local)
        - http://your-server:11434 (remote)
"""

COMMIT_FAILURE_GUIDANCE = """
🔧 The commit could not be created. Things to check:
    - Signing: if commits are signed, make sure your GPG/SSH agent is running and unlocked
      (gpg-connect-agent /bye, or ssh-add -l)
    - Identity: git config user.name / git config user.email
    - Hooks: a pre-commit or commit-msg hook may have rejected the commit
    - Staging: stage your changes first (git add) or use --auto-stage
"""

PUSH_FAILURE_GUIDANCE = """
🔧 The commit was created but could not be pushed. Things to check:
    - Credentials: make sure your SSH agent has your key loaded (ssh-add -l)
      or that a credential helper is configured for HTTPS remotes
    - Upstream: set one with git push --set-upstream origin <branch>
    - Remote changes: pull and rebase before pushing again
Your commit is kept locally; run git push once the issue is fixed.
"""
