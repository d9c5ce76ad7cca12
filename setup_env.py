import os
import secrets

KEY_SETTINGS = ("JWE_ENCRYPTION_KEY", "JWE_SIGNING_KEY")


def generate_key() -> str:
    # 32 random bytes, base64url encoded (43 characters)
    return secrets.token_urlsafe(32)


def setup_env():
    if os.path.exists(".env"):
        response = input("A .env file already exists. Overwrite it? (y/N): ")
        if response.lower() != 'y':
            print("Aborted.")
            return

    if not os.path.exists(".env.example"):
        print("Error: .env.example not found.")
        return

    print("Reading .env.example...")
    with open(".env.example", "r") as f:
        env_content = f.read()

    print("Generating JWE encryption and signing keys...")
    new_lines = []
    for line in env_content.splitlines():
        name = line.split("=", 1)[0]
        if name in KEY_SETTINGS:
            new_lines.append(f'{name}="{generate_key()}"')
        else:
            new_lines.append(line)

    with open(".env", "w") as f:
        f.write("\n".join(new_lines))
        f.write("\n")

    print("SUCCESS: .env file created with new JWE keys.")


if __name__ == "__main__":
    setup_env()
