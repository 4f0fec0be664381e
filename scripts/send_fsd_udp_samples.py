import random
import socket
import time

# Feeds a UdpLineSource channel (FSD_SOURCE=udp) with sample traffic.
# The second template joins two messages with the literal \r\n marker the
# way tshark prints them.

SAMPLES = [
    "@N:{cs}:1200:1:40.6413:-73.7781:{alt}:{gs}:0:0",
    "@S:{cs}:2000:1:40.7000:-73.9000:{alt}:{gs}:0:0\\r\\n#TMEGLL_TWR:{cs}:Contact London",
    "$CQ{cs}:@94836:ACC:{{\"config\":{{\"lights\":{{\"strobe_on\":true}}}}}}",
    "%EGLL_TWR:18300:4:50:5:51.4775:-0.4614:0",
]


def main():
    host = "127.0.0.1"
    port = 6809
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    for _ in range(200):
        line = random.choice(SAMPLES).format(
            cs=random.choice(["UAL123", "BAW45", "DLH7A"]),
            alt=random.choice([3000, 12000, 35000]),
            gs=random.choice([180, 290, 450]),
        )
        sock.sendto((line + "\n").encode(), (host, port))
        time.sleep(0.02)


if __name__ == "__main__":
    main()
